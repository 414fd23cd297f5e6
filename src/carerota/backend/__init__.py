# carerota/backend - Persistence boundary
from .base import (
    BatchDeleteFailure,
    BatchDeleteResult,
    CreateEntryResponse,
    RotaBackend,
    load_schedule,
)
from .http import HttpRotaBackend
from .memory import InMemoryRotaBackend

__all__ = [
    "RotaBackend",
    "CreateEntryResponse",
    "BatchDeleteResult",
    "BatchDeleteFailure",
    "load_schedule",
    "InMemoryRotaBackend",
    "HttpRotaBackend",
]
