# carerota/models - Data models for the rota scheduling core
from .carer import Carer, CompetencyLevel, CompetencyRating, PackageCompetency
from .package import CarePackage
from .rules import RULES, CompetencyPolicy, RulesConfig, WeekendLookback
from .schedule import CandidateEntry, Day, ShiftEntry, WeeklySchedule
from .shift import ShiftType, week_start
from .violation import (
    RuleType,
    RuleViolation,
    Severity,
    ValidationResult,
    aggregate,
    violation_key,
)

__all__ = [
    "Carer", "CompetencyLevel", "CompetencyRating", "PackageCompetency",
    "CarePackage",
    "RulesConfig", "RULES", "WeekendLookback", "CompetencyPolicy",
    "ShiftEntry", "CandidateEntry", "Day", "WeeklySchedule",
    "ShiftType", "week_start",
    "RuleType", "RuleViolation", "Severity", "ValidationResult",
    "aggregate", "violation_key",
]
