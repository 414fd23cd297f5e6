"""
In-Memory Rota Backend
======================
Authoritative persistence for tests, the CLI and demos.

Commits run the same rule engine against this backend's own view under a
lock, so a create is refused with the full violation list exactly as the rota
service refuses it.
"""
import asyncio
import itertools
from dataclasses import replace
from datetime import date, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from carerota.engine import evaluate
from carerota.exceptions import ConflictError, RuleValidationError
from carerota.models.carer import Carer
from carerota.models.package import CarePackage
from carerota.models.rules import RULES, RulesConfig
from carerota.models.schedule import CandidateEntry, ShiftEntry, WeeklySchedule
from carerota.models.shift import week_start as monday_of
from carerota.models.violation import RuleViolation, ValidationResult
from carerota.utils.logging_setup import get_logger

from .base import (
    HISTORY_DAYS_AFTER,
    HISTORY_DAYS_BEFORE,
    BatchDeleteFailure,
    BatchDeleteResult,
    CreateEntryResponse,
)

logger = get_logger("carerota.backend.memory")

SleepFn = Callable[[float], Awaitable[None]]


class InMemoryRotaBackend:
    """
    Dict-backed RotaBackend.

    Args:
        config: Rules applied at commit time
        latency: Seconds every call waits before answering (simulates the network)
        sleep_fn: Awaitable used for latency, injectable in tests
    """

    def __init__(
        self,
        config: Optional[RulesConfig] = None,
        latency: float = 0.0,
        sleep_fn: SleepFn = asyncio.sleep,
    ):
        self.config = config or RULES
        self.latency = latency
        self.sleep_fn = sleep_fn

        self.packages: Dict[str, CarePackage] = {}
        self.carers: Dict[str, Carer] = {}
        self.rosters: Dict[str, List[str]] = {}
        self.package_tasks: Dict[str, Set[str]] = {}
        self.entries: Dict[str, ShiftEntry] = {}

        self._ids = itertools.count(1)
        self._idempotent: Dict[str, CreateEntryResponse] = {}
        self._lock = asyncio.Lock()
        self.calls: List[str] = []

    # --- seeding ------------------------------------------------------------

    def add_package(self, package: CarePackage, task_ids: Iterable[str] = ()) -> CarePackage:
        self.packages[package.id] = package
        self.rosters.setdefault(package.id, [])
        self.package_tasks[package.id] = set(task_ids)
        return package

    def add_carer(self, carer: Carer, package_ids: Iterable[str] = ()) -> Carer:
        """Register a carer and put them on the roster of ``package_ids``."""
        self.carers[carer.id] = carer
        for pid in package_ids:
            roster = self.rosters.setdefault(pid, [])
            if carer.id not in roster:
                roster.append(carer.id)
        return carer

    def add_entry(self, entry: ShiftEntry) -> ShiftEntry:
        """Store an entry as-is, bypassing the rules (fixtures and imports)."""
        if not entry.id:
            entry = replace(entry, id=self._next_id())
        if entry.carer_name is None and entry.carer_id in self.carers:
            entry = replace(entry, carer_name=self.carers[entry.carer_id].name)
        self.entries[entry.id] = entry
        return entry

    def _next_id(self) -> str:
        return f"entry-{next(self._ids)}"

    async def _respond(self, call: str):
        self.calls.append(call)
        if self.latency:
            await self.sleep_fn(self.latency)

    # --- reads --------------------------------------------------------------

    async def get_weekly_schedule(self, package_id: str, week_start: date) -> WeeklySchedule:
        await self._respond("get_weekly_schedule")
        return self._schedule(package_id, monday_of(week_start))

    def _schedule(self, package_id: str, week_start: date) -> WeeklySchedule:
        if package_id not in self.packages:
            raise ConflictError(package_id, f"Care package {package_id} not found")
        week_end = week_start + timedelta(days=6)
        roster = self.rosters.get(package_id, [])
        return WeeklySchedule.build(
            package_id=package_id,
            week_start=week_start,
            entries=[
                e for e in self.entries.values()
                if e.package_id == package_id and week_start <= e.date <= week_end
            ],
            package_carers=[self.carers[c] for c in roster if c in self.carers],
            other_carers=[c for cid, c in self.carers.items() if cid not in roster],
            package_task_ids=self.package_tasks.get(package_id, set()),
        )

    async def get_carer_entries(
        self,
        carer_ids: Iterable[str],
        start: date,
        end: date,
    ) -> List[ShiftEntry]:
        await self._respond("get_carer_entries")
        return self._carer_entries(carer_ids, start, end)

    def _carer_entries(self, carer_ids: Iterable[str], start: date, end: date) -> List[ShiftEntry]:
        wanted = set(carer_ids)
        found = [
            e for e in self.entries.values()
            if e.carer_id in wanted and start <= e.date <= end
        ]
        return sorted(found, key=lambda e: (e.date, e.start_time, e.id))

    async def list_packages(self) -> List[CarePackage]:
        await self._respond("list_packages")
        return [
            replace(p, carer_count=len(self.rosters.get(p.id, [])))
            for p in self.packages.values()
        ]

    # --- rule checks --------------------------------------------------------

    def _evaluate(self, candidate: CandidateEntry, exclude: Optional[str] = None) -> List[RuleViolation]:
        """Engine run against this backend's current view, history included."""
        monday = monday_of(candidate.date)
        schedule = self._schedule(candidate.package_id, monday)
        carer_ids = {e.carer_id for e in schedule.entries} | {candidate.carer_id}
        history = self._carer_entries(
            carer_ids,
            monday - timedelta(days=HISTORY_DAYS_BEFORE),
            monday + timedelta(days=HISTORY_DAYS_AFTER),
        )
        schedule = schedule.with_history(history)
        if exclude:
            schedule = schedule.without(exclude)
        return evaluate(schedule, candidate, self.config)

    async def validate_entry(self, candidate: CandidateEntry) -> ValidationResult:
        await self._respond("validate_entry")
        return ValidationResult.from_violations(self._evaluate(candidate))

    # --- commits ------------------------------------------------------------

    def _store(
        self,
        candidate: CandidateEntry,
        idempotency_key: Optional[str],
        entry_id: Optional[str] = None,
    ) -> CreateEntryResponse:
        """Check and write one entry; caller holds the lock."""
        if idempotency_key and idempotency_key in self._idempotent:
            logger.debug(f"Replaying commit for idempotency key {idempotency_key}")
            return self._idempotent[idempotency_key]
        if entry_id is not None and entry_id not in self.entries:
            raise ConflictError(entry_id)

        result = ValidationResult.from_violations(self._evaluate(candidate, exclude=entry_id))
        if not result.is_valid:
            logger.info(f"Refused {candidate.carer_id} on {candidate.date}: "
                        f"{len(result.violations)} violation(s)")
            raise RuleValidationError(result.violations, result.warnings)

        carer = self.carers.get(candidate.carer_id)
        entry = replace(
            candidate.as_entry(entry_id or self._next_id()),
            carer_name=carer.name if carer else None,
        )
        self.entries[entry.id] = entry
        response = CreateEntryResponse(entry=entry, violations=[], warnings=result.warnings)
        if idempotency_key:
            self._idempotent[idempotency_key] = response
        return response

    async def create_entry(
        self,
        candidate: CandidateEntry,
        idempotency_key: Optional[str] = None,
    ) -> CreateEntryResponse:
        await self._respond("create_entry")
        async with self._lock:
            response = self._store(candidate, idempotency_key)
        entry = response.entry
        logger.info(f"Created {entry.id} for {entry.carer_id} on {entry.date} {entry.shift_type.value}")
        return response

    async def move_entry(
        self,
        entry_id: str,
        candidate: CandidateEntry,
        idempotency_key: Optional[str] = None,
    ) -> CreateEntryResponse:
        await self._respond("move_entry")
        async with self._lock:
            response = self._store(candidate, idempotency_key, entry_id=entry_id)
        entry = response.entry
        logger.info(f"Moved {entry.id} to {entry.date} {entry.shift_type.value}")
        return response

    async def confirm_entry(self, entry_id: str) -> ShiftEntry:
        await self._respond("confirm_entry")
        async with self._lock:
            entry = self.entries.get(entry_id)
            if entry is None:
                raise ConflictError(entry_id)
            if not entry.is_confirmed:
                entry = replace(entry, is_confirmed=True)
                self.entries[entry_id] = entry
            return entry

    async def delete_entry(self, entry_id: str) -> None:
        await self._respond("delete_entry")
        async with self._lock:
            if self.entries.pop(entry_id, None) is None:
                raise ConflictError(entry_id)

    async def batch_delete(self, entry_ids: List[str]) -> BatchDeleteResult:
        await self._respond("batch_delete")
        async with self._lock:
            result = BatchDeleteResult(deleted_count=0)
            for entry_id in entry_ids:
                if self.entries.pop(entry_id, None) is None:
                    result.errors.append(BatchDeleteFailure(id=entry_id, error="Rota entry not found"))
                    continue
                result.deleted_count += 1
                result.deleted_ids.append(entry_id)
            return result
