"""
Rota Workspace
==============
Wires one operator's session, store, services and drag protocol together.

Usage:
    backend = InMemoryRotaBackend()
    ws = RotaWorkspace(backend, package_id="pkg-1", week_start=date(2025, 8, 4))
    await ws.open()
    outcome = await ws.place("carer-1", date(2025, 8, 4), ShiftType.DAY)
"""
from datetime import date
from typing import Callable, List, Optional

from carerota.backend.base import RotaBackend
from carerota.models.package import CarePackage
from carerota.models.rules import RULES, RulesConfig
from carerota.models.schedule import WeeklySchedule
from carerota.models.shift import ShiftType
from carerota.models.violation import RuleViolation
from carerota.services.drag import DragPlacementProtocol, DragSource, DropOutcome
from carerota.services.mutations import MutationOrchestrator
from carerota.services.notifications import AuditSink, Notifier
from carerota.services.validator import PlacementValidator
from carerota.services.violations import ViolationAggregator
from carerota.state.session import SchedulingSession
from carerota.state.store import ScheduleStore
from carerota.utils.structured_logging import bind_context


class RotaWorkspace:
    """Facade over the scheduling components for one package/week view."""

    def __init__(
        self,
        backend: RotaBackend,
        package_id: Optional[str] = None,
        week_start: Optional[date] = None,
        config: Optional[RulesConfig] = None,
        notifier: Optional[Notifier] = None,
        audit: Optional[AuditSink] = None,
        today_fn: Callable[[], date] = date.today,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or RULES
        self.backend = backend
        self.session = SchedulingSession(package_id, week_start, today_fn=today_fn)

        agg_kwargs = {"clock": clock} if clock is not None else {}
        self.violations = ViolationAggregator(
            display_limit=self.config.violation_display_limit,
            ttl_seconds=self.config.recent_violation_ttl_seconds,
            **agg_kwargs,
        )
        self.store = ScheduleStore(backend, self.session, self.violations, self.config)
        self.validator = PlacementValidator(backend, self.config)
        self.mutations = MutationOrchestrator(backend, self.store, self.violations, notifier, audit)
        self.drag = DragPlacementProtocol(self.validator, self.mutations, self.session, self.config)
        self.session.on_change(self._bind)
        self._bind(self.session)

    def _bind(self, session: SchedulingSession):
        bind_context(package_id=session.package_id, week_start=session.week_start.isoformat())

    @property
    def schedule(self) -> Optional[WeeklySchedule]:
        return self.store.schedule

    @property
    def displayed_violations(self) -> List[RuleViolation]:
        return self.violations.displayed

    async def open(self) -> Optional[WeeklySchedule]:
        return await self.store.reload()

    async def packages(self) -> List[CarePackage]:
        return await self.backend.list_packages()

    async def select_package(self, package_id: str) -> Optional[WeeklySchedule]:
        self.session.select_package(package_id)
        return await self.store.reload()

    async def navigate_week(self, direction: int) -> Optional[WeeklySchedule]:
        self.session.navigate_week(direction)
        return await self.store.reload()

    async def go_to_week(self, d: date) -> Optional[WeeklySchedule]:
        self.session.go_to_week(d)
        return await self.store.reload()

    async def go_to_current_week(self) -> Optional[WeeklySchedule]:
        self.session.go_to_current_week()
        return await self.store.reload()

    async def place(
        self,
        carer_id: str,
        on: date,
        shift_type: ShiftType,
        source: Optional[DragSource] = None,
    ) -> DropOutcome:
        """
        One complete drag: pick up ``carer_id`` and drop on the slot.

        Raises:
            RuntimeError: another drop is still committing
        """
        if not self.drag.start(carer_id, source):
            raise RuntimeError("Another drop is still being committed")
        return await self.drag.drop(on, shift_type)
