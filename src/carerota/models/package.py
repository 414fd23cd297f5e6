"""Care package model."""
from dataclasses import dataclass, replace
from fractions import Fraction
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .schedule import WeeklySchedule


@dataclass(frozen=True)
class CarePackage:
    """A client location requiring scheduled care coverage."""

    id: str
    name: str
    postcode: str = ""
    is_active: bool = True
    carer_count: int = 0
    scheduled_hours: Fraction = Fraction(0)
    total_hours: Fraction = Fraction(36)  # Weekly target

    @property
    def remaining_hours(self) -> Fraction:
        return max(Fraction(0), self.total_hours - self.scheduled_hours)

    def with_schedule_stats(self, schedule: "WeeklySchedule") -> "CarePackage":
        """Copy with carer count and scheduled hours derived from a weekly schedule."""
        entries = schedule.entries
        return replace(
            self,
            carer_count=len({e.carer_id for e in entries}),
            scheduled_hours=sum((e.duration_hours for e in entries), Fraction(0)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "postcode": self.postcode,
            "isActive": self.is_active,
            "carerCount": self.carer_count,
            "scheduledHours": float(self.scheduled_hours),
            "totalHours": float(self.total_hours),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CarePackage":
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            postcode=str(d.get("postcode", "") or ""),
            is_active=bool(d.get("isActive", True)),
            carer_count=int(d.get("carerCount", 0) or 0),
            scheduled_hours=_fraction(d.get("scheduledHours", 0)),
            total_hours=_fraction(d.get("totalHours", 36)),
        )


def _fraction(value: Union[int, float, str, None]) -> Fraction:
    if value is None or value == "":
        return Fraction(0)
    return Fraction(str(value)).limit_denominator(60)
