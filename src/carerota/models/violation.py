"""
Rule Violations
===============
Explainable failures (errors) and risks (warnings) produced by the rule engine,
plus the single key used everywhere violations are compared.
"""
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Optional

from .shift import ShiftType


class RuleType(str, Enum):
    """Staffing rules that can be breached."""
    MIN_COMPETENT_STAFF = "MIN_COMPETENT_STAFF"
    COMPETENCY_PAIRING = "COMPETENCY_PAIRING"
    WEEKLY_HOUR_LIMIT = "WEEKLY_HOUR_LIMIT"
    ROTATION_PATTERN = "ROTATION_PATTERN"
    CONSECUTIVE_WEEKENDS = "CONSECUTIVE_WEEKENDS"
    REST_PERIOD_VIOLATION = "REST_PERIOD_VIOLATION"
    CARER_NOT_FOUND = "CARER_NOT_FOUND"
    DUPLICATE_SHIFT = "DUPLICATE_SHIFT"
    NO_PACKAGE_TASKS = "NO_PACKAGE_TASKS"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    @classmethod
    def parse(cls, value: str) -> "RuleType":
        """Map a wire rule name; unknown server rules become VALIDATION_ERROR."""
        aliases = {"CARER_EXISTS": cls.CARER_NOT_FOUND, "NO_DUPLICATE_SHIFTS": cls.DUPLICATE_SHIFT}
        key = str(value).strip().upper()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            return cls.VALIDATION_ERROR


class Severity(str, Enum):
    ERROR = "error"      # Blocks commit
    WARNING = "warning"  # Advisory


@dataclass(frozen=True)
class RuleViolation:
    """A named rule breach for one placement or one slot."""
    rule: RuleType
    message: str
    severity: Severity
    carer_id: Optional[str] = None
    carer_name: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    unique_key: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    @property
    def key(self) -> str:
        return violation_key(self)

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {
            "rule": self.rule.value,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.carer_id is not None:
            d["carerId"] = self.carer_id
        if self.carer_name is not None:
            d["carerName"] = self.carer_name
        if self.additional_info:
            d["additionalInfo"] = {k: _jsonable(v) for k, v in self.additional_info.items()}
        if self.unique_key is not None:
            d["uniqueKey"] = self.unique_key
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "RuleViolation":
        severity = str(d.get("severity", "error")).lower()
        return cls(
            rule=RuleType.parse(d.get("rule", "VALIDATION_ERROR")),
            message=str(d.get("message", "")),
            severity=Severity.WARNING if severity == "warning" else Severity.ERROR,
            carer_id=d.get("carerId"),
            carer_name=d.get("carerName"),
            additional_info=dict(d.get("additionalInfo") or {}),
            unique_key=d.get("uniqueKey"),
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Fraction):
        return float(value)
    if isinstance(value, (date, ShiftType)):
        return value.isoformat() if isinstance(value, date) else value.value
    return value


def violation_key(v: RuleViolation) -> str:
    """
    Canonical de-duplication key.

    ``unique_key`` when the producer set one, otherwise rule + carer
    (id, falling back to name) + message.
    """
    if v.unique_key:
        return v.unique_key
    who = v.carer_id or v.carer_name or ""
    return f"{v.rule.value}|{who}|{v.message}"


def slot_key(rule: RuleType, on: date, shift_type: ShiftType, carer_id: str = "") -> str:
    """unique_key for violations that belong to a slot rather than a whole week."""
    return f"{rule.value}|{carer_id}|{on.isoformat()}|{shift_type.value}"


def with_key(v: RuleViolation) -> RuleViolation:
    """Copy of ``v`` with its canonical key stored in ``unique_key``."""
    if v.unique_key:
        return v
    return replace(v, unique_key=violation_key(v))


def aggregate(violations: Iterable[RuleViolation]) -> List[RuleViolation]:
    """De-duplicate by canonical key; first occurrence wins, order kept."""
    seen = set()
    out = []
    for v in violations:
        k = violation_key(v)
        if k in seen:
            continue
        seen.add(k)
        out.append(v)
    return out


@dataclass
class ValidationResult:
    """Outcome of checking a proposed placement without committing it."""
    is_valid: bool
    violations: List[RuleViolation] = field(default_factory=list)  # errors
    warnings: List[RuleViolation] = field(default_factory=list)
    unavailable: bool = False  # persistence could not be reached

    @classmethod
    def from_violations(cls, found: Iterable[RuleViolation]) -> "ValidationResult":
        found = list(found)
        errors = [v for v in found if v.is_error]
        warnings = [v for v in found if not v.is_error]
        return cls(is_valid=not errors, violations=errors, warnings=warnings)

    @classmethod
    def unreachable(cls) -> "ValidationResult":
        return cls(is_valid=False, unavailable=True)

    @property
    def all(self) -> List[RuleViolation]:
        return self.violations + self.warnings

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "violations": [v.to_dict() for v in self.violations],
            "warnings": [v.to_dict() for v in self.warnings],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ValidationResult":
        return cls(
            is_valid=bool(d.get("isValid", False)),
            violations=[RuleViolation.from_dict(v) for v in d.get("violations") or []],
            warnings=[RuleViolation.from_dict(v) for v in d.get("warnings") or []],
        )
