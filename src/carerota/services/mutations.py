"""
Mutation Orchestrator
=====================
Runs commits (create, move, confirm, delete, batch delete) against persistence.

Each commit attempt, whatever its outcome, is followed by:

- exactly one schedule reload (the local schedule is never patched)
- the commit's violations pushed to the recent bucket
- one summary notification
- one audit event

If the session moved to another package or week while the request was in
flight, the response is abandoned: no reload, no violations, no notification
(the audit event is still emitted, since the commit happened).
"""
import asyncio
import functools
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from carerota.backend.base import BatchDeleteResult, RotaBackend
from carerota.exceptions import (
    BatchDeleteError,
    ConflictError,
    RotaError,
    RuleValidationError,
    TransportError,
)
from carerota.models.schedule import CandidateEntry, ShiftEntry
from carerota.models.shift import format_day
from carerota.models.violation import RuleViolation
from carerota.state.store import ScheduleStore
from carerota.utils.logging_setup import get_logger

from .notifications import (
    AuditEvent,
    AuditSink,
    Notification,
    NotificationCenter,
    NotificationLevel,
    Notifier,
    StructlogAuditSink,
)
from .violations import ViolationAggregator

logger = get_logger("carerota.services.mutations")


@dataclass
class CommitOutcome:
    """What a commit did, as seen by the caller."""
    action: str
    success: bool
    entry: Optional[ShiftEntry] = None
    violations: List[RuleViolation] = field(default_factory=list)
    warnings: List[RuleViolation] = field(default_factory=list)
    batch: Optional[BatchDeleteResult] = None
    already_confirmed: bool = False
    abandoned: bool = False


class MutationOrchestrator:
    """
    Commit operations for one workspace.

    Args:
        backend: Persistence boundary
        store: Schedule store reloaded after every commit
        aggregator: Receives commit violations in its recent bucket
        notifier: Summary toasts (defaults to a NotificationCenter)
        audit: Audit sink (defaults to a StructlogAuditSink)
    """

    def __init__(
        self,
        backend: RotaBackend,
        store: ScheduleStore,
        aggregator: ViolationAggregator,
        notifier: Optional[Notifier] = None,
        audit: Optional[AuditSink] = None,
    ):
        self.backend = backend
        self.store = store
        self.aggregator = aggregator
        self.notifier = notifier or NotificationCenter()
        self.audit = audit or StructlogAuditSink()
        self._inflight: Dict[Tuple, asyncio.Task] = {}

    @property
    def session(self):
        return self.store.session

    # --- shared commit tail -------------------------------------------------

    async def _reload(self):
        try:
            await self.store.reload()
        except RotaError as e:
            logger.warning(f"Reload after commit failed: {type(e).__name__}: {e}")

    async def _settle(
        self,
        generation: int,
        event: AuditEvent,
        notification: Notification,
        recent: Iterable[RuleViolation] = (),
    ) -> bool:
        """
        Reload, surface violations, notify and audit once.

        Returns:
            True when the response was abandoned (the session moved on)
        """
        event.package_id = event.package_id or self.session.package_id
        self.audit.emit(event)
        if not self.session.is_current(generation):
            logger.info(f"Abandoned {event.action} response for {event.entity_id}: session moved on")
            return True
        await self._reload()
        self.aggregator.add_recent(recent)
        self.notifier.notify(notification)
        return False

    def _name(self, carer_id: str) -> str:
        schedule = self.store.schedule
        return schedule.carer_name(carer_id) if schedule is not None else carer_id

    def _local(self, entry_id: str) -> Optional[ShiftEntry]:
        schedule = self.store.schedule
        return schedule.find_entry(entry_id) if schedule is not None else None

    # --- create -------------------------------------------------------------

    async def create_entry(self, candidate: CandidateEntry) -> CommitOutcome:
        """
        Create an entry; concurrent submissions of the same placement share one request.

        Raises:
            RuleValidationError: the server refused the placement (full violation list)
            ConflictError: the package vanished
            TransportError: outcome unknown until the reload that already ran
            RotaError: any other refusal by the service
        """
        identity = candidate.identity
        task = self._inflight.get(identity)
        if task is None:
            task = asyncio.ensure_future(self._create(candidate))
            self._inflight[identity] = task
            task.add_done_callback(functools.partial(self._forget, identity))
        else:
            logger.debug(f"Joining in-flight create for {identity}")
        return await asyncio.shield(task)

    def _forget(self, identity: Tuple, task: asyncio.Task):
        if self._inflight.get(identity) is task:
            del self._inflight[identity]

    async def _create(self, candidate: CandidateEntry) -> CommitOutcome:
        generation = self.session.generation
        name = self._name(candidate.carer_id)
        slot = _slot_label(candidate)
        event = AuditEvent(action="CREATE", entity_id="", before=None,
                           package_id=candidate.package_id)
        try:
            response = await self.backend.create_entry(candidate, idempotency_key=str(uuid.uuid4()))
        except RuleValidationError as e:
            event.outcome, event.after = "refused", candidate.to_dict()
            abandoned = await self._settle(generation, event, Notification(
                NotificationLevel.ERROR,
                f"Could not add {name} to the {slot}: {len(e.violations)} rule violation(s)",
                "CREATE",
            ), e.all)
            if abandoned:
                return CommitOutcome("CREATE", False, violations=e.violations,
                                     warnings=e.warnings, abandoned=True)
            raise
        except RotaError as e:
            event.outcome, event.after = _failure(e), candidate.to_dict()
            abandoned = await self._settle(generation, event, Notification(
                NotificationLevel.ERROR, f"Could not add {name} to the {slot}: {e}", "CREATE",
            ))
            if abandoned:
                return CommitOutcome("CREATE", False, abandoned=True)
            raise

        entry = response.entry
        name = entry.carer_name or name
        event.entity_id, event.after = entry.id, entry.to_dict()
        level = NotificationLevel.WARNING if response.warnings else NotificationLevel.SUCCESS
        message = f"Added {name} to the {slot}"
        if response.warnings:
            message += f" with {len(response.warnings)} warning(s)"
        abandoned = await self._settle(
            generation, event, Notification(level, message, "CREATE"),
            response.violations + response.warnings,
        )
        return CommitOutcome("CREATE", True, entry=entry, violations=response.violations,
                             warnings=response.warnings, abandoned=abandoned)

    # --- move ---------------------------------------------------------------

    async def move_entry(self, entry_id: str, candidate: CandidateEntry) -> CommitOutcome:
        """
        Move an entry to the candidate's slot as one commit.

        The service checks the new slot without the old one and swaps them
        together, so a move is never left half done.

        Raises:
            RuleValidationError: the new slot was refused (full violation list)
            ConflictError: the entry was deleted concurrently
            RotaError: any other failure, including an unknown outcome
        """
        generation = self.session.generation
        before = self._local(entry_id)
        name = self._name(candidate.carer_id)
        slot = _slot_label(candidate)
        event = AuditEvent(action="MOVE", entity_id=entry_id,
                           before=before.to_dict() if before else None,
                           package_id=candidate.package_id)
        try:
            response = await self.backend.move_entry(
                entry_id, candidate, idempotency_key=str(uuid.uuid4())
            )
        except RuleValidationError as e:
            event.outcome, event.after = "refused", candidate.to_dict()
            abandoned = await self._settle(generation, event, Notification(
                NotificationLevel.ERROR,
                f"Could not move {name} to the {slot}: {len(e.violations)} rule violation(s)",
                "MOVE",
            ), e.all)
            if abandoned:
                return CommitOutcome("MOVE", False, violations=e.violations,
                                     warnings=e.warnings, abandoned=True)
            raise
        except RotaError as e:
            event.outcome, event.after = _failure(e), candidate.to_dict()
            abandoned = await self._settle(generation, event, Notification(
                NotificationLevel.ERROR, f"Could not move {name} to the {slot}: {e}", "MOVE",
            ))
            if abandoned:
                return CommitOutcome("MOVE", False, abandoned=True)
            raise

        entry = response.entry
        name = entry.carer_name or name
        event.after = entry.to_dict()
        level = NotificationLevel.WARNING if response.warnings else NotificationLevel.SUCCESS
        message = f"Moved {name} to the {slot}"
        if response.warnings:
            message += f" with {len(response.warnings)} warning(s)"
        abandoned = await self._settle(
            generation, event, Notification(level, message, "MOVE"),
            response.violations + response.warnings,
        )
        return CommitOutcome("MOVE", True, entry=entry, violations=response.violations,
                             warnings=response.warnings, abandoned=abandoned)

    # --- confirm ------------------------------------------------------------

    async def confirm_entry(self, entry_id: str) -> CommitOutcome:
        """Idempotent; an already confirmed entry is a benign outcome."""
        generation = self.session.generation
        before = self._local(entry_id)
        already = before is not None and before.is_confirmed
        event = AuditEvent(action="CONFIRM", entity_id=entry_id,
                           before=before.to_dict() if before else None)
        try:
            entry = await self.backend.confirm_entry(entry_id)
        except RotaError as e:
            event.outcome = _failure(e)
            abandoned = await self._settle(generation, event, Notification(
                NotificationLevel.ERROR, f"Could not confirm shift: {e}", "CONFIRM",
            ))
            if abandoned:
                return CommitOutcome("CONFIRM", False, abandoned=True)
            raise

        event.after = entry.to_dict()
        if already:
            event.outcome = "already_confirmed"
            note = Notification(NotificationLevel.INFO, "Shift already confirmed", "CONFIRM")
        else:
            note = Notification(NotificationLevel.SUCCESS,
                                f"Confirmed {self._name(entry.carer_id)} on {format_day(entry.date)}",
                                "CONFIRM")
        abandoned = await self._settle(generation, event, note)
        return CommitOutcome("CONFIRM", True, entry=entry, already_confirmed=already, abandoned=abandoned)

    # --- delete -------------------------------------------------------------

    async def delete_entry(self, entry_id: str) -> CommitOutcome:
        generation = self.session.generation
        before = self._local(entry_id)
        event = AuditEvent(action="DELETE", entity_id=entry_id,
                           before=before.to_dict() if before else None)
        try:
            await self.backend.delete_entry(entry_id)
        except RotaError as e:
            event.outcome = _failure(e)
            abandoned = await self._settle(generation, event, Notification(
                NotificationLevel.ERROR, f"Could not remove shift: {e}", "DELETE",
            ))
            if abandoned:
                return CommitOutcome("DELETE", False, abandoned=True)
            raise

        label = f"{self._name(before.carer_id)} from {format_day(before.date)}" if before else "shift"
        abandoned = await self._settle(generation, event, Notification(
            NotificationLevel.SUCCESS, f"Removed {label}", "DELETE",
        ))
        return CommitOutcome("DELETE", True, entry=before, abandoned=abandoned)

    async def batch_delete(self, entry_ids: List[str]) -> CommitOutcome:
        """
        Delete many entries, reporting each id's outcome.

        Raises:
            ValueError: no ids given
            BatchDeleteError: nothing was deleted
        """
        ids = list(entry_ids)
        if not ids:
            raise ValueError("batch_delete needs at least one entry id")
        generation = self.session.generation
        event = AuditEvent(action="BATCH_DELETE", entity_id=",".join(ids),
                           before={"ids": ids})
        try:
            result = await self.backend.batch_delete(ids)
        except RotaError as e:
            event.outcome = _failure(e)
            abandoned = await self._settle(generation, event, Notification(
                NotificationLevel.ERROR, f"Could not delete shifts: {e}", "BATCH_DELETE",
            ))
            if abandoned:
                return CommitOutcome("BATCH_DELETE", False, abandoned=True)
            raise

        event.after = result.to_dict()
        if result.is_failure:
            event.outcome = "failed"
            note = Notification(NotificationLevel.ERROR,
                                f"No shifts deleted ({len(result.errors)} failed)", "BATCH_DELETE")
        elif result.is_partial:
            event.outcome = "partial"
            note = Notification(NotificationLevel.WARNING,
                                f"Deleted {result.deleted_count} of {len(ids)} shifts; "
                                f"{len(result.errors)} could not be deleted", "BATCH_DELETE")
        else:
            note = Notification(NotificationLevel.SUCCESS,
                                f"Deleted {result.deleted_count} shift(s)", "BATCH_DELETE")

        abandoned = await self._settle(generation, event, note)
        if result.is_failure and not abandoned:
            raise BatchDeleteError(result)
        return CommitOutcome("BATCH_DELETE", not result.is_failure, batch=result, abandoned=abandoned)


def _failure(e: Exception) -> str:
    if isinstance(e, ConflictError):
        return "conflict"
    if isinstance(e, TransportError):
        return "unknown"
    return "failed"


def _slot_label(candidate: CandidateEntry) -> str:
    return f"{candidate.shift_type.value.lower()} shift on {format_day(candidate.date)}"
