"""
Rest Period Rule
================
A carer coming off a NIGHT shift needs ``rest_period_hours`` before starting
a DAY shift. The check is symmetric: a DAY candidate is compared with the
carer's earlier NIGHT shifts, a NIGHT candidate with the carer's later DAY
shifts. Only the closest (night, day) pair is reported.
"""
from fractions import Fraction
from typing import List, Optional, Tuple

from carerota.models.rules import RulesConfig
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.shift import ShiftType, format_day, format_hours, hours_between
from carerota.models.violation import RuleType, RuleViolation, Severity

from .base import others


def rest_gap(night: ShiftEntry, day: ShiftEntry) -> Fraction:
    """Hours between the end of ``night`` and the start of ``day`` (negative when they overlap)."""
    return hours_between(night.ends_at, day.starts_at)


def closest_pair(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
) -> Optional[Tuple[ShiftEntry, ShiftEntry, Fraction]]:
    """The (night, day, gap) pair involving the candidate with the smallest gap."""
    pool = [
        e for e in others(schedule.carer_entries(candidate.carer_id), candidate)
        if e.shift_type is candidate.shift_type.opposite
    ]
    if candidate.shift_type is ShiftType.DAY:
        pairs = [(n, candidate) for n in pool if n.starts_at < candidate.starts_at]
    else:
        pairs = [(candidate, d) for d in pool if d.starts_at > candidate.starts_at]
    if not pairs:
        return None
    # Ties broken on dates so the reported pair does not depend on history order
    night, day = min(pairs, key=lambda p: (rest_gap(*p), p[0].starts_at, p[1].starts_at))
    return night, day, rest_gap(night, day)


def check_rest_period(
    schedule: WeeklySchedule,
    candidate: ShiftEntry,
    config: RulesConfig,
) -> List[RuleViolation]:
    found = closest_pair(schedule, candidate)
    if found is None:
        return []
    night, day, gap = found
    rest = Fraction(config.rest_period_hours)
    band = Fraction(config.rest_warning_band_hours)

    if gap < rest:
        severity = Severity.ERROR
    elif band and gap < rest + band:
        severity = Severity.WARNING
    else:
        return []

    name = schedule.carer_name(candidate.carer_id)
    if severity is Severity.ERROR:
        message = (f"{name} needs rest after night shift: {format_hours(gap)}h between the night shift "
                   f"on {format_day(night.date)} and the day shift on {format_day(day.date)} "
                   f"(minimum {format_hours(rest)}h)")
    else:
        message = (f"{name} has only {format_hours(gap)}h rest between the night shift "
                   f"on {format_day(night.date)} and the day shift on {format_day(day.date)}")
    return [RuleViolation(
        rule=RuleType.REST_PERIOD_VIOLATION,
        message=message,
        severity=severity,
        carer_id=candidate.carer_id,
        carer_name=name,
        additional_info={
            "gapHours": gap,
            "requiredHours": rest,
            "nightShiftDate": night.date,
            "dayShiftDate": day.date,
        },
        unique_key=(f"{RuleType.REST_PERIOD_VIOLATION.value}|{candidate.carer_id}|"
                    f"{night.date.isoformat()}|{day.date.isoformat()}"),
    )]
