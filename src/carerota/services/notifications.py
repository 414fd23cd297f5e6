"""
Notification and audit collaborators.

The core only emits: one summary notification and one audit event per commit
attempt. Rendering toasts and storing audit records belong to the host.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from carerota.utils.structured_logging import get_structured_logger


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """One summary toast."""
    level: NotificationLevel
    message: str
    action: str = ""


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class NotificationCenter:
    """Default Notifier: keeps history and writes each toast to the structured log."""

    def __init__(self):
        self.history: List[Notification] = []
        self._log = get_structured_logger("carerota.notifications")

    def notify(self, notification: Notification) -> None:
        self.history.append(notification)
        self._log.info(
            "notification",
            level=notification.level.value,
            action=notification.action,
            message=notification.message,
        )

    @property
    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def clear(self):
        self.history.clear()


@dataclass
class AuditEvent:
    """One audit record per commit operation."""
    action: str  # CREATE, MOVE, CONFIRM, DELETE, BATCH_DELETE
    entity_id: str
    entity_type: str = "RotaEntry"
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    outcome: str = "success"
    package_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "before": self.before,
            "after": self.after,
            "outcome": self.outcome,
            "packageId": self.package_id,
            "timestamp": self.timestamp.isoformat(),
        }


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None:
        ...


class StructlogAuditSink:
    """Default AuditSink: logs an ``audit_event`` and remembers what it sent."""

    def __init__(self, forward: Optional[Callable[[AuditEvent], None]] = None):
        self.events: List[AuditEvent] = []
        self.forward = forward
        self._log = get_structured_logger("carerota.audit")

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)
        self._log.info(
            "audit_event",
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            action=event.action,
            outcome=event.outcome,
            package_id=event.package_id,
        )
        if self.forward is not None:
            self.forward(event)
