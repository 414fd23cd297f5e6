"""Shift entries and the weekly schedule aggregate."""
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from fractions import Fraction
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

import pandas as pd

from .carer import Carer
from .shift import (
    ShiftType,
    format_time,
    parse_date,
    parse_time,
    shift_hours,
    shift_span,
    week_dates,
)


SlotKey = Tuple[date, ShiftType]


@dataclass(frozen=True)
class ShiftEntry:
    """One carer working one shift on one date for one package."""
    id: str
    package_id: str
    carer_id: str
    date: date
    shift_type: ShiftType
    start_time: time
    end_time: time
    is_confirmed: bool = False
    carer_name: Optional[str] = None

    def __post_init__(self):
        # Normalise loosely typed input while staying frozen
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "start_time", parse_time(self.start_time))
        object.__setattr__(self, "end_time", parse_time(self.end_time))
        if not isinstance(self.shift_type, ShiftType):
            object.__setattr__(self, "shift_type", ShiftType.from_string(self.shift_type))

    @property
    def slot(self) -> SlotKey:
        return (self.date, self.shift_type)

    @property
    def identity(self) -> Tuple[str, str, date, ShiftType]:
        """The (package, carer, date, shift type) tuple that must be unique."""
        return (self.package_id, self.carer_id, self.date, self.shift_type)

    @property
    def starts_at(self) -> datetime:
        return shift_span(self.date, self.start_time, self.end_time)[0]

    @property
    def ends_at(self) -> datetime:
        return shift_span(self.date, self.start_time, self.end_time)[1]

    @property
    def duration_hours(self) -> Fraction:
        return shift_hours(self.start_time, self.end_time)

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "packageId": self.package_id,
            "carerId": self.carer_id,
            "date": self.date.isoformat(),
            "shiftType": self.shift_type.value,
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
            "isConfirmed": self.is_confirmed,
        }
        if self.carer_name:
            d["carer"] = {"id": self.carer_id, "name": self.carer_name}
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "ShiftEntry":
        carer = d.get("carer") or {}
        return cls(
            id=str(d.get("id", "")),
            package_id=str(d.get("packageId", "")),
            carer_id=str(d.get("carerId") or carer.get("id", "")),
            date=d["date"],
            shift_type=d["shiftType"],
            start_time=d["startTime"],
            end_time=d["endTime"],
            is_confirmed=bool(d.get("isConfirmed", False)),
            carer_name=carer.get("name"),
        )


@dataclass(frozen=True)
class CandidateEntry:
    """A proposed placement that has not been persisted yet."""
    package_id: str
    carer_id: str
    date: date
    shift_type: ShiftType
    start_time: time
    end_time: time

    def __post_init__(self):
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "start_time", parse_time(self.start_time))
        object.__setattr__(self, "end_time", parse_time(self.end_time))
        if not isinstance(self.shift_type, ShiftType):
            object.__setattr__(self, "shift_type", ShiftType.from_string(self.shift_type))

    @property
    def identity(self) -> Tuple[str, str, date, ShiftType]:
        return (self.package_id, self.carer_id, self.date, self.shift_type)

    def as_entry(self, entry_id: str = "", is_confirmed: bool = False) -> ShiftEntry:
        return ShiftEntry(
            id=entry_id,
            package_id=self.package_id,
            carer_id=self.carer_id,
            date=self.date,
            shift_type=self.shift_type,
            start_time=self.start_time,
            end_time=self.end_time,
            is_confirmed=is_confirmed,
        )

    def to_dict(self) -> dict:
        return {
            "packageId": self.package_id,
            "carerId": self.carer_id,
            "date": self.date.isoformat(),
            "shiftType": self.shift_type.value,
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CandidateEntry":
        return cls(
            package_id=str(d["packageId"]),
            carer_id=str(d["carerId"]),
            date=d["date"],
            shift_type=d["shiftType"],
            start_time=d["startTime"],
            end_time=d["endTime"],
        )


@dataclass(frozen=True)
class Day:
    """Entries of one calendar day, split by shift type."""
    date: date
    day_entries: Tuple[ShiftEntry, ...] = ()
    night_entries: Tuple[ShiftEntry, ...] = ()

    def entries_for(self, shift_type: ShiftType) -> Tuple[ShiftEntry, ...]:
        return self.day_entries if shift_type is ShiftType.DAY else self.night_entries

    @property
    def entries(self) -> Tuple[ShiftEntry, ...]:
        return self.day_entries + self.night_entries


def _sort_key(e: ShiftEntry):
    return (e.start_time, e.carer_name or "", e.id)


@dataclass(frozen=True)
class WeeklySchedule:
    """
    One care package's Monday to Sunday rota.

    Built fresh from persistence on every fetch and never patched in place.
    ``history`` holds persisted entries of the scheduled carers outside this
    package/week (previous week, other packages) for look-back rules.
    """
    package_id: str
    week_start: date
    days: Tuple[Day, ...]
    package_carers: Tuple[Carer, ...] = ()
    other_carers: Tuple[Carer, ...] = ()
    package_task_ids: FrozenSet[str] = frozenset()
    history: Tuple[ShiftEntry, ...] = ()

    def __post_init__(self):
        if self.week_start.weekday() != 0:
            raise ValueError(f"week_start must be a Monday, got {self.week_start.isoformat()}")
        if len(self.days) != 7:
            raise ValueError("A weekly schedule holds exactly 7 days")
        for i, day in enumerate(self.days):
            expected = self.week_start + timedelta(days=i)
            if day.date != expected:
                raise ValueError(f"Day {i} must be {expected.isoformat()}")
            for e in day.day_entries + day.night_entries:
                if e.date != day.date:
                    raise ValueError(f"Entry {e.id} dated {e.date} filed under {day.date}")

    # --- construction -------------------------------------------------

    @classmethod
    def build(
        cls,
        package_id: str,
        week_start: date,
        entries: Iterable[ShiftEntry] = (),
        package_carers: Iterable[Carer] = (),
        other_carers: Iterable[Carer] = (),
        package_task_ids: Iterable[str] = (),
        history: Iterable[ShiftEntry] = (),
    ) -> "WeeklySchedule":
        """Group flat entries into days; rejects entries outside the week."""
        dates = week_dates(week_start)
        buckets: Dict[SlotKey, List[ShiftEntry]] = {
            (d, s): [] for d in dates for s in ShiftType
        }
        for e in entries:
            if (e.date, e.shift_type) not in buckets:
                raise ValueError(
                    f"Entry {e.id} on {e.date.isoformat()} is outside week starting {week_start.isoformat()}"
                )
            buckets[(e.date, e.shift_type)].append(e)

        days = tuple(
            Day(
                date=d,
                day_entries=tuple(sorted(buckets[(d, ShiftType.DAY)], key=_sort_key)),
                night_entries=tuple(sorted(buckets[(d, ShiftType.NIGHT)], key=_sort_key)),
            )
            for d in dates
        )
        return cls(
            package_id=package_id,
            week_start=week_start,
            days=days,
            package_carers=tuple(package_carers),
            other_carers=tuple(other_carers),
            package_task_ids=frozenset(package_task_ids),
            history=tuple(history),
        )

    def with_history(self, history: Iterable[ShiftEntry]) -> "WeeklySchedule":
        own = {e.id for e in self.entries}
        return replace(self, history=tuple(e for e in history if e.id not in own))

    def without(self, entry_id: str) -> "WeeklySchedule":
        """New aggregate with one entry left out (hypothetical moves)."""
        return WeeklySchedule.build(
            self.package_id,
            self.week_start,
            [e for e in self.entries if e.id != entry_id],
            self.package_carers,
            self.other_carers,
            self.package_task_ids,
            [e for e in self.history if e.id != entry_id],
        )

    # --- queries --------------------------------------------------------

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)

    @property
    def entries(self) -> List[ShiftEntry]:
        """All entries in schedule order: by day, DAY before NIGHT, then start time."""
        return [e for day in self.days for e in day.entries]

    def contains_date(self, d: date) -> bool:
        return self.week_start <= d <= self.week_end

    def day(self, d: date) -> Day:
        return self.days[(d - self.week_start).days]

    def slot_entries(self, d: date, shift_type: ShiftType) -> Tuple[ShiftEntry, ...]:
        if not self.contains_date(d):
            return ()
        return self.day(d).entries_for(shift_type)

    def find_entry(self, entry_id: str) -> Optional[ShiftEntry]:
        return next((e for e in self.entries if e.id == entry_id), None)

    @property
    def carers(self) -> List[Carer]:
        return list(self.package_carers) + list(self.other_carers)

    def carer(self, carer_id: str) -> Optional[Carer]:
        return next((c for c in self.carers if c.id == carer_id), None)

    def carer_name(self, carer_id: str) -> str:
        c = self.carer(carer_id)
        if c is not None:
            return c.name
        named = next((e.carer_name for e in self.entries if e.carer_id == carer_id and e.carer_name), None)
        return named or carer_id

    def carer_entries(self, carer_id: str, include_history: bool = True) -> List[ShiftEntry]:
        """Entries for one carer, this schedule first, de-duplicated by id."""
        seen = set()
        out = []
        pool = self.entries + (list(self.history) if include_history else [])
        for e in pool:
            if e.carer_id == carer_id and e.id not in seen:
                seen.add(e.id)
                out.append(e)
        return out

    @property
    def has_no_tasks(self) -> bool:
        """True when the package has no tasks to assess competency against."""
        if self.package_task_ids:
            return False
        summaries = [c.package_competency for c in self.carers if c.package_competency is not None]
        if not summaries:
            return True
        return all(s.has_no_tasks for s in summaries)

    # --- statistics -----------------------------------------------------

    def carer_stats(self) -> List[Dict[str, Any]]:
        """Per-carer weekly totals, in first-appearance order."""
        stats: Dict[str, Dict[str, Any]] = {}
        for e in self.entries:
            s = stats.setdefault(e.carer_id, {
                "carer_id": e.carer_id,
                "carer_name": self.carer_name(e.carer_id),
                "total_hours": Fraction(0),
                "day_shifts": 0,
                "night_shifts": 0,
            })
            s["total_hours"] += e.duration_hours
            if e.shift_type is ShiftType.DAY:
                s["day_shifts"] += 1
            else:
                s["night_shifts"] += 1
        return list(stats.values())

    def to_dataframe(self) -> pd.DataFrame:
        """Convert entries to a DataFrame."""
        columns = ["id", "carer_id", "carer_name", "date", "shift_type",
                   "start_time", "end_time", "hours", "is_confirmed"]
        if not self.entries:
            return pd.DataFrame(columns=columns)
        rows = [
            {
                "id": e.id,
                "carer_id": e.carer_id,
                "carer_name": self.carer_name(e.carer_id),
                "date": e.date,
                "shift_type": e.shift_type.value,
                "start_time": format_time(e.start_time),
                "end_time": format_time(e.end_time),
                "hours": float(e.duration_hours),
                "is_confirmed": e.is_confirmed,
            }
            for e in self.entries
        ]
        return pd.DataFrame(rows, columns=columns)

    def to_matrix(self) -> pd.DataFrame:
        """Carer × (date, shift) matrix of start-end labels."""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame()
        df["label"] = df["start_time"] + "-" + df["end_time"]
        return df.pivot_table(
            index="carer_name",
            columns=["date", "shift_type"],
            values="label",
            aggfunc=lambda x: "/".join(sorted(set(x))),
            fill_value="",
        )

    # --- wire format ----------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "packageId": self.package_id,
            "weekStart": self.week_start.isoformat(),
            "weekEnd": (self.week_start + timedelta(days=7)).isoformat(),
            "entries": [e.to_dict() for e in self.entries],
            "packageCarers": [c.to_dict() for c in self.package_carers],
            "otherCarers": [c.to_dict() for c in self.other_carers],
            "packageTaskIds": sorted(self.package_task_ids),
        }

    @classmethod
    def from_dict(cls, d: dict, package_id: Optional[str] = None) -> "WeeklySchedule":
        entries = [ShiftEntry.from_dict(e) for e in d.get("entries") or []]
        pkg = package_id or d.get("packageId") or (entries[0].package_id if entries else "")
        return cls.build(
            package_id=str(pkg),
            week_start=parse_date(d["weekStart"]),
            entries=entries,
            package_carers=[Carer.from_dict(c) for c in d.get("packageCarers") or []],
            other_carers=[Carer.from_dict(c) for c in d.get("otherCarers") or []],
            package_task_ids=d.get("packageTaskIds") or [],
        )
