"""
Placement Validator
===================
Checks a proposed placement against the rules without committing anything.

Validation is advisory: if persistence cannot be reached the validator fails
open for its caller (``is_valid=False`` with no violations and
``unavailable=True``) and logs the transport failure instead of raising.
"""
from datetime import date, time
from typing import Optional, Union

from carerota.backend.base import RotaBackend, load_schedule
from carerota.engine import evaluate, evaluate_removal
from carerota.exceptions import TransportError
from carerota.models.rules import RULES, RulesConfig
from carerota.models.schedule import CandidateEntry
from carerota.models.shift import ShiftType, parse_date, parse_time, week_start
from carerota.models.violation import ValidationResult
from carerota.utils.logging_setup import get_logger

logger = get_logger("carerota.services.validator")


class PlacementValidator:
    """Pre-commit rule checks against a freshly fetched schedule."""

    def __init__(self, backend: RotaBackend, config: Optional[RulesConfig] = None):
        self.backend = backend
        self.config = config or RULES

    def build_candidate(
        self,
        package_id: str,
        carer_id: str,
        on: Union[date, str],
        shift_type: Union[ShiftType, str],
        start_time: Optional[Union[time, str]] = None,
        end_time: Optional[Union[time, str]] = None,
    ) -> CandidateEntry:
        """Candidate for a slot; missing times default to the shift type's times."""
        if not isinstance(shift_type, ShiftType):
            shift_type = ShiftType.from_string(shift_type)
        default_start, default_end = self.config.default_times(shift_type)
        return CandidateEntry(
            package_id=package_id,
            carer_id=carer_id,
            date=parse_date(on),
            shift_type=shift_type,
            start_time=parse_time(start_time) if start_time else default_start,
            end_time=parse_time(end_time) if end_time else default_end,
        )

    async def validate(
        self,
        package_id: str,
        carer_id: str,
        on: Union[date, str],
        shift_type: Union[ShiftType, str],
        start_time: Optional[Union[time, str]] = None,
        end_time: Optional[Union[time, str]] = None,
        replacing: Optional[str] = None,
        remote: bool = False,
    ) -> ValidationResult:
        """
        Validate one placement.

        Args:
            package_id: Care package
            carer_id: Carer being placed
            on: Date of the shift
            shift_type: DAY or NIGHT
            start_time: Defaults to the shift type's start
            end_time: Defaults to the shift type's end
            replacing: Entry id left out of the check (moving a carer between slots)
            remote: Ask the server's validate endpoint instead of evaluating
                locally; ignored when ``replacing`` is set

        Returns:
            ValidationResult partitioned into errors and warnings
        """
        candidate = self.build_candidate(package_id, carer_id, on, shift_type, start_time, end_time)
        try:
            if remote and replacing is None:
                result = await self.backend.validate_entry(candidate)
            else:
                schedule = await load_schedule(
                    self.backend, package_id, week_start(candidate.date), [carer_id]
                )
                if replacing:
                    schedule = schedule.without(replacing)
                result = ValidationResult.from_violations(evaluate(schedule, candidate, self.config))
        except TransportError as e:
            logger.warning(f"Validation unavailable for {carer_id} on {candidate.date}: {e}")
            return ValidationResult.unreachable()

        logger.debug(f"Validated {carer_id} {candidate.date} {candidate.shift_type.value}: "
                     f"valid={result.is_valid} errors={len(result.violations)} warnings={len(result.warnings)}")
        return result

    async def validate_removal(
        self,
        entry_id: str,
        package_id: str,
        week_of: Union[date, str],
    ) -> ValidationResult:
        """Staffing errors that deleting ``entry_id`` would cause."""
        try:
            schedule = await load_schedule(self.backend, package_id, week_start(parse_date(week_of)))
        except TransportError as e:
            logger.warning(f"Removal check unavailable for {entry_id}: {e}")
            return ValidationResult.unreachable()
        return ValidationResult.from_violations(evaluate_removal(schedule, entry_id, self.config))
