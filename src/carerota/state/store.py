"""
Schedule Store
==============
Owns the WeeklySchedule of the session's current package and week.

The aggregate is never patched: every reload replaces it wholesale with the
persisted view and recomputes the standing violations. Reloads are
last-write-wins; a reload overtaken by a newer reload or by navigation is
discarded.
"""
from typing import TYPE_CHECKING, List, Optional

from carerota.backend.base import RotaBackend, load_schedule
from carerota.engine import scan_schedule
from carerota.models.rules import RULES, RulesConfig
from carerota.models.schedule import WeeklySchedule
from carerota.models.violation import RuleViolation
from carerota.utils.logging_setup import get_logger

from .session import SchedulingSession

if TYPE_CHECKING:
    from carerota.services.violations import ViolationAggregator

logger = get_logger("carerota.state.store")


class ScheduleStore:
    """Current schedule snapshot plus its standing violations."""

    def __init__(
        self,
        backend: RotaBackend,
        session: SchedulingSession,
        aggregator: Optional["ViolationAggregator"] = None,
        config: Optional[RulesConfig] = None,
    ):
        self.backend = backend
        self.session = session
        self.aggregator = aggregator
        self.config = config or RULES

        self._schedule: Optional[WeeklySchedule] = None
        self._standing: List[RuleViolation] = []
        self._reload_seq = 0
        self.reload_count = 0

        session.on_change(self._on_session_change)

    @property
    def schedule(self) -> Optional[WeeklySchedule]:
        return self._schedule

    @property
    def standing(self) -> List[RuleViolation]:
        return list(self._standing)

    def _on_session_change(self, session: SchedulingSession):
        logger.debug(f"Session moved to {session!r}, discarding schedule")
        self._schedule = None
        self._standing = []
        self._reload_seq += 1  # in-flight reloads become stale
        if self.aggregator is not None:
            self.aggregator.reset()

    async def reload(self) -> Optional[WeeklySchedule]:
        """
        Fetch the session's schedule and replace the snapshot.

        Returns:
            The new schedule, or None when no package is selected or the
            response was overtaken (newer reload or navigation)
        """
        package_id = self.session.package_id
        if package_id is None:
            return None

        generation = self.session.generation
        self._reload_seq += 1
        seq = self._reload_seq
        self.reload_count += 1

        schedule = await load_schedule(self.backend, package_id, self.session.week_start)

        if seq != self._reload_seq or not self.session.is_current(generation):
            logger.debug(f"Discarding stale reload #{seq} for {package_id}")
            return None

        self._schedule = schedule
        self._standing = scan_schedule(schedule, self.config)
        if self.aggregator is not None:
            self.aggregator.set_standing(self._standing)
        logger.info(f"Loaded {package_id} week of {schedule.week_start.isoformat()}: "
                    f"{len(schedule.entries)} entries, {len(self._standing)} standing violation(s)")
        return schedule
