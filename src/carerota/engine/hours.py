"""WEEKLY_HOUR_LIMIT: a carer's Monday to Sunday hours may not exceed the cap."""
from datetime import timedelta
from fractions import Fraction
from typing import List

from carerota.models.rules import RulesConfig
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.shift import format_hours, week_start
from carerota.models.violation import RuleType, RuleViolation, Severity

from .base import others


def weekly_hours(schedule: WeeklySchedule, candidate: ShiftEntry) -> Fraction:
    """
    Hours the candidate's carer already works in the candidate's week.

    Counts this schedule and look-back history (other packages), excluding
    the candidate itself. Shifts are attributed to the date they start on.
    """
    monday = week_start(candidate.date)
    sunday = monday + timedelta(days=6)
    pool = others(schedule.carer_entries(candidate.carer_id), candidate)
    return sum((e.duration_hours for e in pool if monday <= e.date <= sunday), Fraction(0))


def check_weekly_hours(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    current = weekly_hours(schedule, candidate)
    proposed = current + candidate.duration_hours
    limit = config.weekly_hour_limit
    if proposed <= limit:
        return []

    name = schedule.carer_name(candidate.carer_id)
    return [RuleViolation(
        rule=RuleType.WEEKLY_HOUR_LIMIT,
        message=f"{name} would exceed weekly hours ({format_hours(proposed)}/{format_hours(limit)})",
        severity=Severity.ERROR,
        carer_id=candidate.carer_id,
        carer_name=name,
        additional_info={
            "currentHours": current,
            "proposedHours": proposed,
            "limit": limit,
            "weekStart": week_start(candidate.date),
        },
    )]
