"""
Competency Rules
================
MIN_COMPETENT_STAFF: a staffed slot needs a competent carer on it.
COMPETENCY_PAIRING: a carer below COMPETENT only works alongside one who is.
"""
from datetime import date
from typing import FrozenSet, List, Optional, Sequence

from carerota.models.carer import Carer, CompetencyLevel
from carerota.models.rules import CompetencyPolicy, RulesConfig
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.shift import ShiftType, format_day
from carerota.models.violation import RuleType, RuleViolation, Severity, slot_key

from .base import others


def package_level(
    carer: Optional[Carer],
    task_ids: FrozenSet[str],
    policy: CompetencyPolicy = CompetencyPolicy.ANY,
) -> CompetencyLevel:
    """
    Effective competency of a carer for a package's tasks.

    ANY takes the best rating among package tasks, ALL the worst (an unrated
    task counts as NOT_ASSESSED).
    """
    if carer is None or not task_ids:
        return CompetencyLevel.NOT_ASSESSED
    ratings = carer.ratings_by_task
    levels = [ratings.get(t, CompetencyLevel.NOT_ASSESSED) for t in sorted(task_ids)]
    if policy is CompetencyPolicy.ALL:
        return min(levels, key=lambda l: l.rank)
    return max(levels, key=lambda l: l.rank)


def is_competent(schedule: WeeklySchedule, carer_id: str, config: RulesConfig) -> bool:
    """Package competency; a server-computed summary wins over raw ratings."""
    carer = schedule.carer(carer_id)
    if carer is None:
        return False
    summary = carer.package_competency
    if summary is not None and not summary.has_no_tasks:
        return summary.is_package_competent
    return package_level(carer, schedule.package_task_ids, config.competency_policy).is_competent


def check_package_tasks(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    """Warn when the package has no tasks, so competency cannot be checked."""
    if not schedule.has_no_tasks:
        return []
    return [RuleViolation(
        rule=RuleType.NO_PACKAGE_TASKS,
        message="Package has no tasks assigned",
        severity=Severity.WARNING,
        unique_key=f"{RuleType.NO_PACKAGE_TASKS.value}|{schedule.package_id}",
    )]


def slot_staffing_violation(
    schedule: WeeklySchedule,
    on: date,
    shift_type: ShiftType,
    carer_ids: Sequence[str],
    config: RulesConfig,
) -> Optional[RuleViolation]:
    """MIN_COMPETENT_STAFF for a slot staffed by ``carer_ids``."""
    if not carer_ids or schedule.has_no_tasks:
        return None
    competent = sum(1 for cid in carer_ids if is_competent(schedule, cid, config))
    non_competent = len(carer_ids) - competent
    if competent >= config.min_competent_staff or non_competent == 0:
        return None
    shift = shift_type.value.lower()
    return RuleViolation(
        rule=RuleType.MIN_COMPETENT_STAFF,
        message=f"The {shift} shift on {format_day(on)} needs a competent supervisor",
        severity=Severity.ERROR,
        additional_info={
            "shiftDate": on,
            "shiftType": shift_type,
            "competentCount": competent,
            "required": config.min_competent_staff,
        },
        unique_key=slot_key(RuleType.MIN_COMPETENT_STAFF, on, shift_type),
    )


def check_min_competent_staff(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    slot = others(schedule.slot_entries(candidate.date, candidate.shift_type), candidate)
    carer_ids = [e.carer_id for e in slot] + [candidate.carer_id]
    v = slot_staffing_violation(schedule, candidate.date, candidate.shift_type, carer_ids, config)
    return [v] if v else []


def check_competency_pairing(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    if schedule.has_no_tasks or is_competent(schedule, candidate.carer_id, config):
        return []
    slot = others(schedule.slot_entries(candidate.date, candidate.shift_type), candidate)
    if any(is_competent(schedule, e.carer_id, config) for e in slot):
        return []

    carer = schedule.carer(candidate.carer_id)
    name = schedule.carer_name(candidate.carer_id)
    level = package_level(carer, schedule.package_task_ids, config.competency_policy)
    shift = candidate.shift_type.value.lower()
    return [RuleViolation(
        rule=RuleType.COMPETENCY_PAIRING,
        message=f"{name} needs assessment for this package and cannot work the {shift} shift "
                f"on {format_day(candidate.date)} without a competent carer",
        severity=Severity.ERROR,
        carer_id=candidate.carer_id,
        carer_name=name,
        additional_info={"level": level.value, "shiftDate": candidate.date, "shiftType": candidate.shift_type},
        unique_key=slot_key(RuleType.COMPETENCY_PAIRING, candidate.date, candidate.shift_type, candidate.carer_id),
    )]
