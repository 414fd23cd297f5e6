"""Roster rules: the carer must exist and must not be double-booked."""
from typing import List

from carerota.models.rules import RulesConfig
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.shift import format_day
from carerota.models.violation import RuleType, RuleViolation, Severity, slot_key

from .base import others


def check_carer_exists(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    """The candidate's carer must be on the package or organisation roster."""
    if schedule.carer(candidate.carer_id) is not None:
        return []
    return [RuleViolation(
        rule=RuleType.CARER_NOT_FOUND,
        message="Carer not found",
        severity=Severity.ERROR,
        carer_id=candidate.carer_id,
        carer_name=candidate.carer_name,
    )]


def check_duplicate_shift(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    """At most one entry per (package, carer, date, shift type)."""
    clash = [
        e for e in others(schedule.slot_entries(candidate.date, candidate.shift_type), candidate)
        if e.carer_id == candidate.carer_id and e.package_id == candidate.package_id
    ]
    if not clash:
        return []
    name = schedule.carer_name(candidate.carer_id)
    shift = candidate.shift_type.value.lower()
    return [RuleViolation(
        rule=RuleType.DUPLICATE_SHIFT,
        message=f"{name} is already on the {shift} shift on {format_day(candidate.date)}",
        severity=Severity.ERROR,
        carer_id=candidate.carer_id,
        carer_name=name,
        additional_info={"shiftDate": candidate.date, "existingEntryId": clash[0].id},
        unique_key=slot_key(RuleType.DUPLICATE_SHIFT, candidate.date, candidate.shift_type, candidate.carer_id),
    )]
