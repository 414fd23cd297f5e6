# carerota/services - Validation, commits, violations and drag protocol
from .drag import DragPhase, DragPlacementProtocol, DragSource, DropOutcome, DropStatus, SlotFeedback, SlotState
from .mutations import CommitOutcome, MutationOrchestrator
from .notifications import (
    AuditEvent,
    AuditSink,
    Notification,
    NotificationCenter,
    NotificationLevel,
    Notifier,
    StructlogAuditSink,
)
from .validator import PlacementValidator
from .violations import ViolationAggregator

__all__ = [
    "PlacementValidator",
    "MutationOrchestrator",
    "CommitOutcome",
    "ViolationAggregator",
    "DragPlacementProtocol",
    "DragPhase",
    "DragSource",
    "DropOutcome",
    "DropStatus",
    "SlotFeedback",
    "SlotState",
    "Notification",
    "NotificationLevel",
    "Notifier",
    "NotificationCenter",
    "AuditEvent",
    "AuditSink",
    "StructlogAuditSink",
]
