"""
Drag-and-Drop Placement Protocol
================================
State machine for placing a carer by dragging them onto a slot:

    IDLE -> DRAGGING -> PENDING_VALIDATION -> VALID | INVALID -> IDLE

A drop validates first and commits only when the placement is valid.
Validation is bounded by a timeout; no answer means no commit, reported as
INVALID with reason ``timeout`` rather than as a rule violation.

Dragging an existing entry to another slot commits as a single move, so the
carer is never left booked in both slots. No new drag starts while a valid
drop is committing.

Results are guarded per slot by a monotonically increasing sequence number
and by the session generation, so a response for a superseded drop, or for a
package/week the operator has left, is discarded and never touches the
slot's feedback.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from carerota.exceptions import RotaError, RuleValidationError
from carerota.models.rules import RULES, RulesConfig
from carerota.models.schedule import ShiftEntry, SlotKey
from carerota.models.shift import ShiftType, parse_date
from carerota.models.violation import RuleViolation, ValidationResult
from carerota.state.session import SchedulingSession
from carerota.utils.logging_setup import get_logger

from .mutations import CommitOutcome, MutationOrchestrator
from .validator import PlacementValidator

logger = get_logger("carerota.services.drag")


class DragPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    PENDING_VALIDATION = "pending_validation"
    VALID = "valid"
    INVALID = "invalid"


class SlotState(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


class DropStatus(str, Enum):
    COMMITTED = "committed"
    INVALID = "invalid"
    COMMIT_FAILED = "commit_failed"
    STALE = "stale"


@dataclass(frozen=True)
class DragSource:
    """Where the dragged carer came from: the roster, or an existing entry."""
    entry_id: Optional[str] = None

    @property
    def is_move(self) -> bool:
        return self.entry_id is not None

    @classmethod
    def roster(cls) -> "DragSource":
        return cls()

    @classmethod
    def slot(cls, entry: ShiftEntry) -> "DragSource":
        return cls(entry_id=entry.id)


@dataclass
class SlotFeedback:
    """Latest validation state of one slot, for rendering."""
    state: SlotState
    seq: int
    carer_id: str
    violations: List[RuleViolation] = field(default_factory=list)
    warnings: List[RuleViolation] = field(default_factory=list)
    reason: str = ""


@dataclass
class DropOutcome:
    status: DropStatus
    slot: SlotKey
    seq: int
    result: Optional[ValidationResult] = None
    commit: Optional[CommitOutcome] = None
    reason: str = ""


@dataclass(frozen=True)
class _Ticket:
    slot: SlotKey
    seq: int
    generation: int
    carer_id: str
    source: DragSource


class DragPlacementProtocol:
    """
    Drag-and-drop placement for one workspace.

    Args:
        validator: Pre-commit checks
        orchestrator: Commits valid drops
        session: Package/week context; navigation abandons pending drops
        config: Supplies ``validation_timeout_seconds``
    """

    def __init__(
        self,
        validator: PlacementValidator,
        orchestrator: MutationOrchestrator,
        session: SchedulingSession,
        config: Optional[RulesConfig] = None,
    ):
        self.validator = validator
        self.orchestrator = orchestrator
        self.session = session
        self.config = config or RULES

        self.phase = DragPhase.IDLE
        self.carer_id: Optional[str] = None
        self.source: Optional[DragSource] = None
        self._pending: Optional[_Ticket] = None
        self._seq: Dict[SlotKey, int] = {}
        self._feedback: Dict[SlotKey, SlotFeedback] = {}

        session.on_change(self._on_session_change)

    # --- transitions ----------------------------------------------------

    def start(self, carer_id: str, source: Optional[DragSource] = None) -> bool:
        """
        IDLE, DRAGGING, PENDING_VALIDATION or INVALID -> DRAGGING.

        A pending validation is abandoned. Refused (returns False) while a valid
        drop is being committed.
        """
        if self.phase is DragPhase.VALID:
            logger.debug(f"Drag for {carer_id} refused: drop #{self._pending.seq} is committing")
            return False
        if self._pending is not None:
            self._abandon(self._pending)
        self.carer_id = carer_id
        self.source = source or DragSource.roster()
        self.phase = DragPhase.DRAGGING
        logger.debug(f"Drag started for {carer_id} from {self.source}")
        return True

    def cancel(self) -> bool:
        """DRAGGING -> IDLE without validating (dropped outside any slot)."""
        if self.phase is not DragPhase.DRAGGING:
            return False
        self._to_idle()
        return True

    async def drop(self, on, shift_type) -> DropOutcome:
        """
        Drop the dragged carer on a slot: validate, then commit if valid.

        Raises:
            RuntimeError: no drag in progress
        """
        if self.phase is not DragPhase.DRAGGING or self.carer_id is None:
            raise RuntimeError("drop() called without an active drag")
        if not isinstance(shift_type, ShiftType):
            shift_type = ShiftType.from_string(shift_type)
        slot: SlotKey = (parse_date(on), shift_type)

        seq = self._seq.get(slot, 0) + 1
        self._seq[slot] = seq
        ticket = _Ticket(slot, seq, self.session.generation, self.carer_id, self.source)
        self._pending = ticket
        self.phase = DragPhase.PENDING_VALIDATION
        self._feedback[slot] = SlotFeedback(SlotState.PENDING, seq, ticket.carer_id)

        result: Optional[ValidationResult] = None
        reason = ""
        try:
            result = await asyncio.wait_for(
                self.validator.validate(
                    self.session.package_id, ticket.carer_id, slot[0], shift_type,
                    replacing=ticket.source.entry_id,
                ),
                timeout=self.config.validation_timeout_seconds,
            )
        except asyncio.TimeoutError:
            reason = "timeout"
            logger.warning(f"Validation for {slot[0]} {shift_type.value} timed out")
        except RotaError as e:
            reason = type(e).__name__
            logger.warning(f"Validation for {slot[0]} {shift_type.value} failed: {e}")
        except BaseException:
            if self._pending is ticket:
                self._abandon(ticket)
                self._to_idle()
            raise

        if self._is_stale(ticket):
            return self._stale(ticket, result)

        if result is None or not result.is_valid:
            if not reason:
                reason = "unavailable" if result.unavailable else "rules"
            self._resolve(ticket, SlotState.INVALID, result, reason)
            self._to_idle()
            return DropOutcome(DropStatus.INVALID, slot, seq, result=result, reason=reason)

        self._resolve(ticket, SlotState.VALID, result)
        self.phase = DragPhase.VALID
        return await self._commit(ticket, result)

    # --- commit ---------------------------------------------------------

    async def _commit(self, ticket: _Ticket, result: ValidationResult) -> DropOutcome:
        on, shift_type = ticket.slot
        candidate = self.validator.build_candidate(
            self.session.package_id, ticket.carer_id, on, shift_type
        )
        try:
            if ticket.source.is_move:
                commit = await self.orchestrator.move_entry(ticket.source.entry_id, candidate)
            else:
                commit = await self.orchestrator.create_entry(candidate)
        except RuleValidationError as e:
            if self._is_stale(ticket):
                return self._stale(ticket, result)
            self._resolve(ticket, SlotState.INVALID, ValidationResult(False, e.violations, e.warnings), "refused")
            self._to_idle()
            return DropOutcome(DropStatus.COMMIT_FAILED, ticket.slot, ticket.seq, result=result, reason="refused")
        except RotaError as e:
            if self._is_stale(ticket):
                return self._stale(ticket, result)
            self._resolve(ticket, SlotState.INVALID, None, type(e).__name__)
            self._to_idle()
            return DropOutcome(DropStatus.COMMIT_FAILED, ticket.slot, ticket.seq, result=result,
                               reason=type(e).__name__)
        except BaseException:
            if self._pending is ticket:
                self._to_idle()
            raise

        if commit.abandoned or self._is_stale(ticket):
            return self._stale(ticket, result)

        self._to_idle()
        return DropOutcome(DropStatus.COMMITTED, ticket.slot, ticket.seq, result=result, commit=commit)

    # --- guards ---------------------------------------------------------

    def _is_stale(self, ticket: _Ticket) -> bool:
        return (
            self._pending is not ticket
            or self._seq.get(ticket.slot) != ticket.seq
            or not self.session.is_current(ticket.generation)
        )

    def _stale(self, ticket: _Ticket, result: Optional[ValidationResult]) -> DropOutcome:
        logger.debug(f"Discarding stale drop #{ticket.seq} for {ticket.slot[0]} {ticket.slot[1].value}")
        return DropOutcome(DropStatus.STALE, ticket.slot, ticket.seq, result=result, reason="stale")

    def _resolve(
        self,
        ticket: _Ticket,
        state: SlotState,
        result: Optional[ValidationResult],
        reason: str = "",
    ):
        self._feedback[ticket.slot] = SlotFeedback(
            state=state,
            seq=ticket.seq,
            carer_id=ticket.carer_id,
            violations=list(result.violations) if result else [],
            warnings=list(result.warnings) if result else [],
            reason=reason,
        )

    def _abandon(self, ticket: _Ticket):
        logger.debug(f"Abandoning pending drop #{ticket.seq} for {ticket.slot[0]}")
        self._pending = None
        current = self._feedback.get(ticket.slot)
        if current is not None and current.seq == ticket.seq and current.state is SlotState.PENDING:
            del self._feedback[ticket.slot]

    def _to_idle(self):
        self.phase = DragPhase.IDLE
        self.carer_id = None
        self.source = None
        self._pending = None

    def _on_session_change(self, session: SchedulingSession):
        if self._pending is not None:
            self._abandon(self._pending)
        self._feedback.clear()
        self._to_idle()

    # --- rendering ------------------------------------------------------

    def slot_feedback(self, on: date, shift_type: ShiftType) -> Optional[SlotFeedback]:
        if not isinstance(shift_type, ShiftType):
            shift_type = ShiftType.from_string(shift_type)
        return self._feedback.get((parse_date(on), shift_type))
