"""Shift type definitions, week arithmetic and exact hour math."""
from datetime import date, datetime, time, timedelta
from enum import Enum
from fractions import Fraction
from typing import Union


class ShiftType(str, Enum):
    """Types of shifts in a care package rota."""
    DAY = "DAY"
    NIGHT = "NIGHT"

    @property
    def opposite(self) -> "ShiftType":
        return ShiftType.NIGHT if self is ShiftType.DAY else ShiftType.DAY

    @classmethod
    def from_string(cls, s: str) -> "ShiftType":
        """Parse shift from various string formats."""
        mapping = {
            "day": cls.DAY, "d": cls.DAY, "days": cls.DAY,
            "night": cls.NIGHT, "n": cls.NIGHT, "nights": cls.NIGHT,
        }
        key = str(s).strip().lower()
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Unknown shift type: {s!r}")


# Monday = 0 ... Sunday = 6
WEEKDAYS = [0, 1, 2, 3, 4]
WEEKEND = [5, 6]
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

DEFAULT_SHIFT_TIMES = {
    ShiftType.DAY: (time(9, 0), time(17, 0)),
    ShiftType.NIGHT: (time(21, 0), time(7, 0)),
}


def is_weekend(d: date) -> bool:
    return d.weekday() in WEEKEND


def week_start(d: date) -> date:
    """Monday of the week containing ``d``."""
    return d - timedelta(days=d.weekday())


def week_dates(start: date) -> list:
    """The seven calendar dates of the Monday-start week beginning at ``start``."""
    return [start + timedelta(days=i) for i in range(7)]


def parse_date(value: Union[str, date, datetime]) -> date:
    """
    Parse a calendar date from the wire.

    ISO datetimes are truncated to their ``YYYY-MM-DD`` prefix instead of being
    converted between time zones, so a rota date never drifts by a day.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def parse_time(value: Union[str, time]) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) wall-clock time."""
    if isinstance(value, time):
        return value
    parts = str(value).strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time: {value!r}")
    return time(int(parts[0]), int(parts[1]))


def format_time(t: time) -> str:
    return t.strftime("%H:%M")


def shift_span(on: date, start: time, end: time):
    """Start and end datetimes of a shift; an end at or before the start rolls to the next day."""
    starts_at = datetime.combine(on, start)
    ends_at = datetime.combine(on, end)
    if end < start:
        ends_at += timedelta(days=1)
    return starts_at, ends_at


def shift_hours(start: time, end: time) -> Fraction:
    """
    Exact length of a shift in hours.

    Overnight shifts (end before start) wrap past midnight; equal times are a
    zero-length shift.
    """
    start_min = start.hour * 60 + start.minute
    end_min = end.hour * 60 + end.minute
    if end_min < start_min:
        end_min += 24 * 60
    return Fraction(end_min - start_min, 60)


def hours_between(earlier: datetime, later: datetime) -> Fraction:
    delta = later - earlier
    return Fraction(int(delta.total_seconds()) // 60, 60)


def format_hours(hours: Fraction) -> str:
    """Render exact hours for messages: ``36``, ``37.5``, ``20.25``."""
    if hours.denominator == 1:
        return str(hours.numerator)
    return f"{float(hours):.2f}".rstrip("0").rstrip(".")


def format_day(d: date) -> str:
    """``Mon 04 Aug`` style label used in violation messages."""
    return d.strftime("%a %d %b")
