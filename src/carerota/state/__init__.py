# carerota/state - Session context and schedule store
from .session import SchedulingSession
from .store import ScheduleStore

__all__ = ["SchedulingSession", "ScheduleStore"]
