# carerota/engine - Pure staffing rule engine
from .competency import is_competent, package_level
from .evaluator import EVALUATORS, evaluate, evaluate_removal, scan_schedule
from .hours import weekly_hours
from .weekend import previous_weekend

__all__ = [
    "evaluate",
    "evaluate_removal",
    "scan_schedule",
    "EVALUATORS",
    "is_competent",
    "package_level",
    "weekly_hours",
    "previous_weekend",
]
