"""
Persistence Boundary
====================
Async protocol the services use to read schedules and commit changes, plus
the response types that cross it.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional, Protocol

from carerota.models.package import CarePackage
from carerota.models.schedule import CandidateEntry, ShiftEntry, WeeklySchedule
from carerota.models.violation import RuleViolation, ValidationResult
from carerota.utils.logging_setup import log_function_call


@dataclass
class CreateEntryResponse:
    """Authoritative result of a successful create."""
    entry: ShiftEntry
    violations: List[RuleViolation] = field(default_factory=list)
    warnings: List[RuleViolation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "entry": self.entry.to_dict(),
            "violations": [v.to_dict() for v in self.violations],
            "warnings": [v.to_dict() for v in self.warnings],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CreateEntryResponse":
        entry = d.get("entry") or d
        return cls(
            entry=ShiftEntry.from_dict(entry),
            violations=[RuleViolation.from_dict(v) for v in d.get("violations") or []],
            warnings=[RuleViolation.from_dict(v) for v in d.get("warnings") or []],
        )


@dataclass(frozen=True)
class BatchDeleteFailure:
    """One id a batch delete could not remove."""
    id: str
    error: str

    def to_dict(self) -> dict:
        return {"id": self.id, "error": self.error}


@dataclass
class BatchDeleteResult:
    """Per-id outcome of a batch delete."""
    deleted_count: int
    errors: List[BatchDeleteFailure] = field(default_factory=list)
    deleted_ids: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        """Something was deleted and something failed."""
        return self.deleted_count > 0 and bool(self.errors)

    @property
    def is_failure(self) -> bool:
        return self.deleted_count == 0

    def to_dict(self) -> dict:
        return {
            "deletedCount": self.deleted_count,
            "errors": [e.to_dict() for e in self.errors],
            "deletedIds": list(self.deleted_ids),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "BatchDeleteResult":
        deleted = d.get("deletedEntries") or []
        return cls(
            deleted_count=int(d.get("deletedCount", 0)),
            errors=[
                BatchDeleteFailure(id=str(e.get("id", "")), error=str(e.get("error", "")))
                for e in d.get("errors") or []
            ],
            deleted_ids=list(d.get("deletedIds") or [str(e.get("id")) for e in deleted]),
        )


class RotaBackend(Protocol):
    """Operations the core needs from persistence."""

    async def get_weekly_schedule(self, package_id: str, week_start: date) -> WeeklySchedule:
        """Schedule for one package and Monday-start week (without look-back history)."""
        ...

    async def get_carer_entries(
        self,
        carer_ids: Iterable[str],
        start: date,
        end: date,
    ) -> List[ShiftEntry]:
        """Persisted entries of the carers between ``start`` and ``end`` inclusive, any package."""
        ...

    async def validate_entry(self, candidate: CandidateEntry) -> ValidationResult:
        ...

    async def create_entry(
        self,
        candidate: CandidateEntry,
        idempotency_key: Optional[str] = None,
    ) -> CreateEntryResponse:
        """Raises RuleValidationError when the candidate breaks an error rule."""
        ...

    async def move_entry(
        self,
        entry_id: str,
        candidate: CandidateEntry,
        idempotency_key: Optional[str] = None,
    ) -> CreateEntryResponse:
        """
        Move an entry to the candidate's slot in one step.

        The candidate is checked with ``entry_id`` left out of the schedule; the
        moved entry keeps its id and comes back unconfirmed.

        Raises:
            ConflictError: the entry no longer exists
            RuleValidationError: the new slot breaks an error rule
        """
        ...

    async def confirm_entry(self, entry_id: str) -> ShiftEntry:
        """Raises ConflictError when the entry no longer exists."""
        ...

    async def delete_entry(self, entry_id: str) -> None:
        """Raises ConflictError when the entry no longer exists."""
        ...

    async def batch_delete(self, entry_ids: List[str]) -> BatchDeleteResult:
        ...

    async def list_packages(self) -> List[CarePackage]:
        ...


# Look-back reaches the previous week; look-ahead covers rest before next Monday
HISTORY_DAYS_BEFORE = 7
HISTORY_DAYS_AFTER = 7


@log_function_call
async def load_schedule(
    backend: RotaBackend,
    package_id: str,
    week_start: date,
    carer_ids: Iterable[str] = (),
) -> WeeklySchedule:
    """
    Fetch a weekly schedule and attach look-back history.

    History covers every carer scheduled this week plus ``carer_ids`` (e.g. a
    carer about to be placed), across all packages, from the previous Monday
    to the following Monday.

    Args:
        backend: Persistence boundary
        package_id: Care package
        week_start: Monday of the week
        carer_ids: Extra carers whose history is needed

    Returns:
        WeeklySchedule with ``history`` populated
    """
    schedule = await backend.get_weekly_schedule(package_id, week_start)
    wanted = sorted({e.carer_id for e in schedule.entries} | {c for c in carer_ids if c})
    if not wanted:
        return schedule
    history = await backend.get_carer_entries(
        wanted,
        week_start - timedelta(days=HISTORY_DAYS_BEFORE),
        week_start + timedelta(days=HISTORY_DAYS_AFTER),
    )
    return schedule.with_history(history)
