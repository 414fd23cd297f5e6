"""
Rule Engine
===========
Composes the independent rule evaluators.

``evaluate`` runs every evaluator against one candidate and concatenates the
results without short-circuiting, so an operator sees every breach at once.
``scan_schedule`` re-evaluates each persisted entry (an entry is excluded from
its own comparison set by id) and de-duplicates the standing violations.

Usage:
    from carerota.engine import evaluate, scan_schedule

    violations = evaluate(schedule, candidate)
    standing = scan_schedule(schedule)
"""
import logging
from typing import List, Optional, Union

from carerota.models.rules import RULES, RulesConfig
from carerota.models.schedule import CandidateEntry, ShiftEntry, WeeklySchedule
from carerota.models.violation import RuleViolation, aggregate
from carerota.utils.logging_setup import EngineLogger, TRACE, get_logger

from .base import EvaluatorFn
from .competency import (
    check_competency_pairing,
    check_min_competent_staff,
    check_package_tasks,
    slot_staffing_violation,
)
from .hours import check_weekly_hours
from .rest import check_rest_period
from .roster import check_carer_exists, check_duplicate_shift
from .rotation import check_rotation_pattern
from .weekend import check_consecutive_weekends

logger = get_logger("carerota.engine")

EVALUATORS: List[EvaluatorFn] = [
    check_carer_exists,
    check_duplicate_shift,
    check_package_tasks,
    check_min_competent_staff,
    check_competency_pairing,
    check_weekly_hours,
    check_rest_period,
    check_consecutive_weekends,
    check_rotation_pattern,
]


def _as_entry(candidate: Union[ShiftEntry, CandidateEntry]) -> ShiftEntry:
    if isinstance(candidate, CandidateEntry):
        return candidate.as_entry()
    return candidate


def evaluate(
    schedule: WeeklySchedule,
    candidate: Union[ShiftEntry, CandidateEntry],
    config: Optional[RulesConfig] = None,
) -> List[RuleViolation]:
    """
    Evaluate one placement against every rule.

    Args:
        schedule: Snapshot the placement is checked against (never mutated)
        candidate: Hypothetical placement, or a persisted entry during a scan
        config: Rules configuration, defaults to RULES

    Returns:
        Every violation found, errors and warnings together
    """
    config = config or RULES
    entry = _as_entry(candidate)
    found: List[RuleViolation] = []
    for evaluator in EVALUATORS:
        found.extend(evaluator(schedule, entry, config))
    logger.log(
        TRACE,
        f"evaluate {entry.carer_id} {entry.date} {entry.shift_type.value}: {len(found)} violation(s)",
    )
    return found


def evaluate_removal(
    schedule: WeeklySchedule,
    entry: Union[ShiftEntry, str],
    config: Optional[RulesConfig] = None,
) -> List[RuleViolation]:
    """MIN_COMPETENT_STAFF for the entry's slot once the entry is gone."""
    config = config or RULES
    if isinstance(entry, str):
        found = schedule.find_entry(entry)
        if found is None:
            return []
        entry = found
    remaining = [
        e.carer_id for e in schedule.slot_entries(entry.date, entry.shift_type) if e.id != entry.id
    ]
    violation = slot_staffing_violation(schedule, entry.date, entry.shift_type, remaining, config)
    return [violation] if violation else []


def scan_schedule(
    schedule: WeeklySchedule,
    config: Optional[RulesConfig] = None,
) -> List[RuleViolation]:
    """
    Standing violations of a whole schedule.

    Entries are visited in schedule order (day, DAY before NIGHT, start time),
    and violations of one condition found from several entries collapse to
    the first occurrence.
    """
    config = config or RULES
    log = EngineLogger()
    log.phase(f"SCAN {schedule.package_id} week of {schedule.week_start.isoformat()}")
    log.detail("entries", len(schedule.entries))
    log.detail("history", len(schedule.history))

    found: List[RuleViolation] = []
    for entry in schedule.entries:
        log.enter(f"{entry.date.isoformat()} {entry.shift_type.value} {entry.carer_id}")
        violations = evaluate(schedule, entry, config)
        for v in violations:
            log.rule(v.rule, False, v.message, failed_level=logging.WARNING if v.is_error else logging.INFO)
        found.extend(violations)
        log.exit()

    standing = aggregate(found)
    errors = sum(1 for v in standing if v.is_error)
    log.summary(errors, len(standing) - errors)
    return standing
