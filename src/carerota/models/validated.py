"""
Pydantic Validated Models
=========================
Validation layer for rules configuration read at the application boundary
(config files, CLI, environment).

Usage:
    from carerota.models.validated import ValidatedRulesConfig

    config = ValidatedRulesConfig(weekly_hour_limit=40).to_dataclass()
"""
from enum import Enum
from fractions import Fraction
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .shift import parse_time


class WeekendLookbackEnum(str, Enum):
    CALENDAR = "calendar"
    ROLLING = "rolling"


class CompetencyPolicyEnum(str, Enum):
    ANY = "any"
    ALL = "all"


class ValidatedRulesConfig(BaseModel):
    """
    Pydantic-validated rules configuration.

    Use this for strict validation at boundaries; convert to the dataclass
    RulesConfig before handing it to the engine.
    """
    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    weekly_hour_limit: float = Field(default=36, gt=0, le=168, description="Max hours per carer per week")
    min_competent_staff: int = Field(default=1, ge=1, le=10)
    rest_period_hours: int = Field(default=48, ge=0, le=168)
    rest_warning_band_hours: int = Field(default=0, ge=0, le=72)

    weekend_lookback: WeekendLookbackEnum = Field(default=WeekendLookbackEnum.CALENDAR)
    competency_policy: CompetencyPolicyEnum = Field(default=CompetencyPolicyEnum.ANY)
    rotation_pattern_enabled: bool = Field(default=True)

    shift_times: Dict[str, List[str]] = Field(
        default_factory=lambda: {"DAY": ["09:00", "17:00"], "NIGHT": ["21:00", "07:00"]}
    )

    validation_timeout_seconds: float = Field(default=5.0, gt=0, le=120)
    violation_display_limit: int = Field(default=8, ge=1, le=100)
    recent_violation_ttl_seconds: Optional[float] = Field(default=10.0, gt=0)

    @field_validator("weekly_hour_limit")
    @classmethod
    def validate_hour_limit(cls, v: float) -> float:
        """Limits are whole minutes."""
        if Fraction(str(v)) * 60 % 1 != 0:
            raise ValueError("weekly_hour_limit must be a whole number of minutes")
        return v

    @field_validator("shift_times")
    @classmethod
    def validate_shift_times(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        out = {}
        for shift, times in v.items():
            key = str(shift).strip().upper()
            if key not in ("DAY", "NIGHT"):
                raise ValueError(f"unknown shift type {shift!r}")
            if len(times) != 2:
                raise ValueError(f"{key} needs [start, end]")
            for t in times:
                parse_time(t)
            out[key] = list(times)
        return out

    @model_validator(mode="after")
    def validate_model(self):
        """Cross-field validation."""
        if self.rest_warning_band_hours and not self.rest_period_hours:
            raise ValueError("rest_warning_band_hours needs a rest_period_hours")
        return self

    def to_dataclass(self):
        """Convert to the dataclass RulesConfig used by the engine."""
        from carerota.models.rules import RulesConfig

        return RulesConfig.from_dict(self.model_dump())

    @classmethod
    def from_dataclass(cls, config) -> "ValidatedRulesConfig":
        return cls(**config.to_dict())
