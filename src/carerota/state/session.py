"""
Scheduling Session
==================
Explicit context for "which package, which week" an operator is looking at.

Every navigation bumps ``generation``; responses started under an older
generation are abandoned by the store and the services.
"""
from datetime import date, timedelta
from typing import Callable, List, Optional

from carerota.models.shift import week_start as monday_of

SessionListener = Callable[["SchedulingSession"], None]


class SchedulingSession:
    """
    Current package and week for one operator workspace.

    Args:
        package_id: Selected care package, if any
        week_start: Any date in the week to show (normalised to Monday)
        today_fn: Clock used for "current week", injectable in tests
    """

    def __init__(
        self,
        package_id: Optional[str] = None,
        week_start: Optional[date] = None,
        today_fn: Callable[[], date] = date.today,
    ):
        self.today_fn = today_fn
        self._package_id = package_id
        self._week_start = monday_of(week_start or today_fn())
        self._generation = 0
        self._listeners: List[SessionListener] = []

    @property
    def package_id(self) -> Optional[str]:
        return self._package_id

    @property
    def week_start(self) -> date:
        return self._week_start

    @property
    def week_end(self) -> date:
        return self._week_start + timedelta(days=6)

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def on_change(self, listener: SessionListener):
        self._listeners.append(listener)

    def _changed(self):
        self._generation += 1
        for listener in list(self._listeners):
            listener(self)

    # --- navigation ---------------------------------------------------------

    def select_package(self, package_id: str):
        if package_id == self._package_id:
            return
        self._package_id = package_id
        self._changed()

    def navigate_week(self, direction: int):
        """Move ``direction`` weeks forward (negative for back)."""
        if direction == 0:
            return
        self._week_start += timedelta(weeks=direction)
        self._changed()

    def go_to_week(self, d: date):
        monday = monday_of(d)
        if monday == self._week_start:
            return
        self._week_start = monday
        self._changed()

    def go_to_current_week(self):
        self.go_to_week(self.today_fn())

    def contains(self, d: date) -> bool:
        return self._week_start <= d <= self.week_end

    def __repr__(self) -> str:
        return (f"SchedulingSession(package_id={self._package_id!r}, "
                f"week_start={self._week_start.isoformat()}, generation={self._generation})")
