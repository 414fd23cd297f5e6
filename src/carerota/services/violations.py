"""
Violation Aggregator
====================
Collects violations from the two places they come from:

- standing: the whole-schedule scan, replaced on every reload
- recent: results of individual commits and validations

Both buckets share one de-duplication key (``violation_key``), so a
condition found by the scan and by a commit is shown once.
"""
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from carerota.models.violation import RuleType, RuleViolation, aggregate, violation_key
from carerota.utils.logging_setup import get_logger

logger = get_logger("carerota.services.violations")

DEFAULT_DISPLAY_LIMIT = 8


class ViolationAggregator:
    """
    Standing and recent violations with a capped, dismissible view.

    Args:
        display_limit: Recent items shown when not in show-all mode
        ttl_seconds: Age after which ``prune_expired`` drops recent items
            (None keeps them until dismissed)
        clock: Monotonic seconds, injectable in tests
    """

    def __init__(
        self,
        display_limit: int = DEFAULT_DISPLAY_LIMIT,
        ttl_seconds: Optional[float] = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.display_limit = display_limit
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.show_all = False
        self._standing: List[RuleViolation] = []
        self._recent: List[Tuple[RuleViolation, float]] = []

    # --- buckets ------------------------------------------------------------

    @property
    def standing(self) -> List[RuleViolation]:
        return list(self._standing)

    @property
    def recent(self) -> List[RuleViolation]:
        return [v for v, _ in self._recent]

    def set_standing(self, violations: Iterable[RuleViolation]):
        """Replace the standing bucket (called on every schedule reload)."""
        self._standing = aggregate(violations)

    def add_recent(self, violations: Iterable[RuleViolation]):
        """Append commit results; a new item supersedes a recent one with the same key."""
        now = self.clock()
        for v in violations:
            key = violation_key(v)
            self._recent = [(r, t) for r, t in self._recent if violation_key(r) != key]
            self._recent.append((v, now))

    # --- view ---------------------------------------------------------------

    @property
    def displayed(self) -> List[RuleViolation]:
        """Capped recent items, or everything de-duplicated in show-all mode."""
        if self.show_all:
            return aggregate(self.recent + self._standing)
        return self.recent[:self.display_limit]

    @property
    def total_count(self) -> int:
        return len(aggregate(self.recent + self._standing))

    @property
    def hidden_count(self) -> int:
        return max(0, self.total_count - len(self.displayed))

    def grouped(self) -> Dict[RuleType, List[RuleViolation]]:
        """Displayed items grouped by rule, rules in order of first appearance."""
        groups: Dict[RuleType, List[RuleViolation]] = {}
        for v in self.displayed:
            groups.setdefault(v.rule, []).append(v)
        return groups

    # --- operator actions ---------------------------------------------------

    def dismiss_one(self, index: int) -> bool:
        """
        Dismiss the displayed item at ``index``.

        Only recent items can be dismissed; standing items describe the
        persisted schedule and stay until a reload no longer finds them.

        Returns:
            True when a recent item was removed
        """
        shown = self.displayed
        if not 0 <= index < len(shown):
            return False
        key = violation_key(shown[index])
        before = len(self._recent)
        self._recent = [(r, t) for r, t in self._recent if violation_key(r) != key]
        return len(self._recent) < before

    def clear_all(self):
        """Clear recent items; standing items are untouched."""
        self._recent = []

    def toggle_show_all(self) -> bool:
        self.show_all = not self.show_all
        return self.show_all

    def reset(self):
        """Clear both buckets (package or week switch)."""
        self._standing = []
        self._recent = []

    def prune_expired(self, now: Optional[float] = None) -> int:
        """Drop recent items older than ``ttl_seconds``; returns how many went."""
        if self.ttl_seconds is None:
            return 0
        now = self.clock() if now is None else now
        kept = [(v, t) for v, t in self._recent if now - t < self.ttl_seconds]
        dropped = len(self._recent) - len(kept)
        self._recent = kept
        if dropped:
            logger.debug(f"Pruned {dropped} expired violation(s)")
        return dropped
