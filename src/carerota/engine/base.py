"""
Rule Evaluator Interface
========================
Every rule is a plain function ``(schedule, candidate, config) -> violations``.
Evaluators never mutate the schedule and never read a clock.
"""
from typing import Callable, Iterable, List, Protocol

from carerota.models.rules import RulesConfig
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.violation import RuleViolation


class RuleEvaluator(Protocol):
    """Structural type of a single rule."""

    def __call__(
        self,
        schedule: WeeklySchedule,
        candidate: ShiftEntry,
        config: RulesConfig,
    ) -> List[RuleViolation]:
        ...


EvaluatorFn = Callable[[WeeklySchedule, ShiftEntry, RulesConfig], List[RuleViolation]]


def others(entries: Iterable[ShiftEntry], candidate: ShiftEntry) -> List[ShiftEntry]:
    """
    Entries other than the candidate itself.

    A persisted entry re-evaluated during a whole-schedule scan carries its own
    id; a hypothetical placement has an empty id and excludes nothing.
    """
    if not candidate.id:
        return list(entries)
    return [e for e in entries if e.id != candidate.id]
