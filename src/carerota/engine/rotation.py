"""ROTATION_PATTERN: a week of one shift type should be followed by a week of the other."""
from datetime import timedelta
from typing import List

from carerota.models.rules import RulesConfig
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.shift import week_start
from carerota.models.violation import RuleType, RuleViolation, Severity

from .base import others


def check_rotation_pattern(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    """Advisory only; always a warning."""
    if not config.rotation_pattern_enabled:
        return []
    this_monday = week_start(candidate.date)
    prior_monday = this_monday - timedelta(days=7)
    last_week = [
        e for e in others(schedule.carer_entries(candidate.carer_id), candidate)
        if prior_monday <= e.date < this_monday
    ]
    if not last_week or any(e.shift_type is not candidate.shift_type for e in last_week):
        return []

    name = schedule.carer_name(candidate.carer_id)
    shift = candidate.shift_type.value.lower()
    return [RuleViolation(
        rule=RuleType.ROTATION_PATTERN,
        message=f"{name} worked {shift} shifts last week",
        severity=Severity.WARNING,
        carer_id=candidate.carer_id,
        carer_name=name,
        additional_info={"previousWeekStart": prior_monday, "shiftCount": len(last_week)},
    )]
