"""Exception taxonomy for rota commits."""
from typing import List, Optional

from carerota.models.violation import RuleViolation


class RotaError(Exception):
    """Base exception class for carerota."""

    def __init__(self, message: str = "", details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


class RuleValidationError(RotaError):
    """Raised when a commit is refused because error-severity violations are present."""

    def __init__(
        self,
        violations: List[RuleViolation],
        warnings: Optional[List[RuleViolation]] = None,
        message: str = "Rota entry violates scheduling rules",
    ):
        self.violations = list(violations)
        self.warnings = list(warnings or [])
        if self.violations:
            message = f"{message}: " + "; ".join(v.message for v in self.violations)
        super().__init__(message)

    @property
    def all(self) -> List[RuleViolation]:
        return self.violations + self.warnings


class ConflictError(RotaError):
    """Raised when an entity vanished or changed between read and write (NotFound)."""

    def __init__(self, entity_id: str, message: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message or f"Rota entry {entity_id} not found")


class TransportError(RotaError):
    """Raised on timeouts, connectivity failures and server errors; the outcome is unknown."""

    def __init__(self, message: str, retryable: bool = True, status_code: Optional[int] = None):
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(message)


class BatchDeleteError(RotaError):
    """Raised when a batch delete removed nothing."""

    def __init__(self, result):
        self.result = result
        super().__init__(f"No entries deleted ({len(result.errors)} failed)")
