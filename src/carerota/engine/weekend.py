"""CONSECUTIVE_WEEKENDS: warn when a carer works two weekends running."""
from datetime import date, timedelta
from typing import List

from carerota.models.rules import RulesConfig, WeekendLookback
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.shift import WEEKEND, is_weekend, week_start
from carerota.models.violation import RuleType, RuleViolation, Severity

from .base import others


def previous_weekend(on: date, lookback: WeekendLookback) -> List[date]:
    """
    Dates that count as "the previous weekend" for a weekend date ``on``.

    Args:
        on: Saturday or Sunday being scheduled
        lookback: CALENDAR takes Sat/Sun of the previous Monday-start week,
            ROLLING takes the same weekday exactly 7 days earlier

    Returns:
        Look-back dates, earliest first
    """
    if lookback is WeekendLookback.ROLLING:
        return [on - timedelta(days=7)]
    prior_monday = week_start(on) - timedelta(days=7)
    return [prior_monday + timedelta(days=d) for d in WEEKEND]


def check_consecutive_weekends(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    if not is_weekend(candidate.date):
        return []
    window = set(previous_weekend(candidate.date, config.weekend_lookback))
    worked = sorted(
        e.date for e in others(schedule.carer_entries(candidate.carer_id), candidate)
        if e.date in window
    )
    if not worked:
        return []

    name = schedule.carer_name(candidate.carer_id)
    return [RuleViolation(
        rule=RuleType.CONSECUTIVE_WEEKENDS,
        message=f"{name} worked last weekend",
        severity=Severity.WARNING,
        carer_id=candidate.carer_id,
        carer_name=name,
        additional_info={"previousWeekendDates": worked, "lookback": config.weekend_lookback.value},
    )]
