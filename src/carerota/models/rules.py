"""
Scheduling Rules Configuration
==============================
Central source of truth for staffing limits, look-back policy and the
presentation knobs the services read.
"""
from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from fractions import Fraction
from typing import Dict, Optional, Tuple

from .shift import DEFAULT_SHIFT_TIMES, ShiftType, format_time, parse_time


class WeekendLookback(str, Enum):
    """Which dates count as "the previous weekend"."""
    CALENDAR = "calendar"  # Sat/Sun of the previous Monday-start week
    ROLLING = "rolling"    # Same weekday exactly 7 days earlier


class CompetencyPolicy(str, Enum):
    """How task ratings combine into package competency."""
    ANY = "any"  # One package task at COMPETENT or above
    ALL = "all"  # Every package task at COMPETENT or above


# Defaults carried over from the rota service
SCHEDULING_RULES = {
    "WEEKLY_HOUR_LIMIT": 36,
    "MIN_COMPETENT_STAFF": 1,
    "REST_PERIOD_NIGHT_TO_DAY": 48,  # hours
    "MAX_CONSECUTIVE_WEEKENDS": 1,
}


@dataclass
class RulesConfig:
    """Configuration for the rule engine and the services around it."""

    # Limits
    weekly_hour_limit: Fraction = Fraction(SCHEDULING_RULES["WEEKLY_HOUR_LIMIT"])
    min_competent_staff: int = SCHEDULING_RULES["MIN_COMPETENT_STAFF"]
    rest_period_hours: int = SCHEDULING_RULES["REST_PERIOD_NIGHT_TO_DAY"]
    rest_warning_band_hours: int = 0  # 0 = no near-miss warnings

    # Policies
    weekend_lookback: WeekendLookback = WeekendLookback.CALENDAR
    competency_policy: CompetencyPolicy = CompetencyPolicy.ANY
    rotation_pattern_enabled: bool = True

    # Default slot times used when a carer is dropped on a slot
    shift_times: Dict[ShiftType, Tuple[time, time]] = field(
        default_factory=lambda: dict(DEFAULT_SHIFT_TIMES)
    )

    # Services
    validation_timeout_seconds: float = 5.0
    violation_display_limit: int = 8
    recent_violation_ttl_seconds: Optional[float] = 10.0  # None = keep until dismissed

    def __post_init__(self):
        self.weekly_hour_limit = Fraction(self.weekly_hour_limit)
        if not isinstance(self.weekend_lookback, WeekendLookback):
            self.weekend_lookback = WeekendLookback(self.weekend_lookback)
        if not isinstance(self.competency_policy, CompetencyPolicy):
            self.competency_policy = CompetencyPolicy(self.competency_policy)

    def default_times(self, shift_type: ShiftType) -> Tuple[time, time]:
        return self.shift_times.get(shift_type, DEFAULT_SHIFT_TIMES[shift_type])

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return {
            "weekly_hour_limit": float(self.weekly_hour_limit),
            "min_competent_staff": self.min_competent_staff,
            "rest_period_hours": self.rest_period_hours,
            "rest_warning_band_hours": self.rest_warning_band_hours,
            "weekend_lookback": self.weekend_lookback.value,
            "competency_policy": self.competency_policy.value,
            "rotation_pattern_enabled": self.rotation_pattern_enabled,
            "shift_times": {
                s.value: [format_time(a), format_time(b)] for s, (a, b) in self.shift_times.items()
            },
            "validation_timeout_seconds": self.validation_timeout_seconds,
            "violation_display_limit": self.violation_display_limit,
            "recent_violation_ttl_seconds": self.recent_violation_ttl_seconds,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "RulesConfig":
        """Create from dictionary; unknown keys are ignored."""
        cfg = cls()
        for key, value in d.items():
            if not hasattr(cfg, key):
                continue
            if key == "weekly_hour_limit":
                value = Fraction(str(value))
            elif key == "weekend_lookback":
                value = WeekendLookback(value) if value else WeekendLookback.CALENDAR
            elif key == "competency_policy":
                value = CompetencyPolicy(value) if value else CompetencyPolicy.ANY
            elif key == "shift_times":
                value = {
                    ShiftType.from_string(s): (parse_time(a), parse_time(b))
                    for s, (a, b) in value.items()
                }
            setattr(cfg, key, value)
        return cfg


RULES = RulesConfig()
