"""Tests for the staffing rule engine."""
from datetime import date, time, timedelta

import pytest

from carerota.engine import (
    EVALUATORS,
    evaluate,
    evaluate_removal,
    is_competent,
    package_level,
    previous_weekend,
    scan_schedule,
    weekly_hours,
)
from carerota.engine.rest import closest_pair
from carerota.models.carer import Carer, CompetencyLevel, PackageCompetency
from carerota.models.rules import CompetencyPolicy, RulesConfig, WeekendLookback
from carerota.models.schedule import CandidateEntry
from carerota.models.shift import DEFAULT_SHIFT_TIMES, ShiftType
from carerota.models.violation import RuleType, Severity

from conftest import MONDAY, PACKAGE_ID

TUESDAY = MONDAY + timedelta(days=1)
SATURDAY = MONDAY + timedelta(days=5)


def candidate(carer_id, on, shift_type=ShiftType.DAY, start=None, end=None):
    default_start, default_end = DEFAULT_SHIFT_TIMES[shift_type]
    return CandidateEntry(PACKAGE_ID, carer_id, on, shift_type, start or default_start, end or default_end)


def rules(violations):
    return [v.rule for v in violations]


class TestEvaluate:
    """Composition of the evaluators."""

    def test_clean_placement(self, make_schedule):
        assert evaluate(make_schedule(), candidate("alice", MONDAY)) == []

    def test_defaults_to_module_rules(self, make_schedule, config):
        s = make_schedule()
        c = candidate("bob", MONDAY)
        assert evaluate(s, c) == evaluate(s, c, config)

    def test_does_not_short_circuit(self, make_schedule):
        """An unknown carer still gets every other rule evaluated."""
        found = rules(evaluate(make_schedule(), candidate("zed", MONDAY)))
        assert RuleType.CARER_NOT_FOUND in found
        assert RuleType.MIN_COMPETENT_STAFF in found
        assert RuleType.COMPETENCY_PAIRING in found

    def test_evaluator_order(self):
        names = [fn.__name__ for fn in EVALUATORS]
        assert names[0] == "check_carer_exists"
        assert names[-1] == "check_rotation_pattern"

    def test_schedule_not_mutated(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "bob", MONDAY)])
        before = s.to_dict()
        evaluate(s, candidate("dan", MONDAY))
        assert s.to_dict() == before


class TestRoster:

    def test_unknown_carer(self, make_schedule):
        v = evaluate(make_schedule(), candidate("zed", MONDAY))[0]
        assert v.rule is RuleType.CARER_NOT_FOUND
        assert v.message == "Carer not found"
        assert v.is_error

    def test_other_carers_count_as_known(self, make_schedule):
        s = make_schedule(roster=[Carer("alice", "Alice"), Carer("zed", "Zed")])
        assert RuleType.CARER_NOT_FOUND not in rules(evaluate(s, candidate("zed", MONDAY)))

    def test_duplicate_shift(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY)])
        found = [v for v in evaluate(s, candidate("alice", MONDAY)) if v.rule is RuleType.DUPLICATE_SHIFT]
        assert len(found) == 1
        assert found[0].message == "Alice is already on the day shift on Mon 04 Aug"

    def test_other_shift_same_day_is_not_duplicate(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY)])
        found = rules(evaluate(s, candidate("alice", MONDAY, ShiftType.NIGHT)))
        assert RuleType.DUPLICATE_SHIFT not in found


class TestCompetency:
    """MIN_COMPETENT_STAFF and COMPETENCY_PAIRING."""

    def test_package_level_any_and_all(self, carers):
        alice = carers[0]
        tasks = frozenset(["task-1", "task-2"])
        assert package_level(alice, tasks, CompetencyPolicy.ANY) is CompetencyLevel.COMPETENT
        assert package_level(alice, tasks, CompetencyPolicy.ALL) is CompetencyLevel.NOT_ASSESSED
        assert package_level(None, tasks) is CompetencyLevel.NOT_ASSESSED

    def test_is_competent_follows_policy(self, make_schedule):
        s = make_schedule()
        assert is_competent(s, "alice", RulesConfig())
        assert not is_competent(s, "alice", RulesConfig(competency_policy="all"))
        assert not is_competent(s, "dan", RulesConfig())
        assert not is_competent(s, "nobody", RulesConfig())

    def test_summary_wins_over_ratings(self, make_schedule, config):
        roster = [Carer("eve", "Eve", package_competency=PackageCompetency(2, 2, True, False))]
        assert is_competent(make_schedule(roster=roster), "eve", config)

    def test_lone_non_competent_carer(self, make_schedule):
        found = evaluate(make_schedule(), candidate("bob", MONDAY))
        assert rules(found) == [RuleType.MIN_COMPETENT_STAFF, RuleType.COMPETENCY_PAIRING]
        staffing = found[0]
        assert staffing.message == "The day shift on Mon 04 Aug needs a competent supervisor"
        assert staffing.additional_info["competentCount"] == 0
        assert found[1].message == (
            "Bob needs assessment for this package and cannot work the day shift "
            "on Mon 04 Aug without a competent carer"
        )

    def test_competent_colleague_clears_both(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY)])
        assert evaluate(s, candidate("bob", MONDAY)) == []

    def test_competent_carer_alone_is_fine(self, make_schedule):
        assert evaluate(make_schedule(), candidate("cara", MONDAY)) == []

    def test_colleague_on_other_slot_does_not_count(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY, ShiftType.NIGHT)])
        assert RuleType.COMPETENCY_PAIRING in rules(evaluate(s, candidate("bob", MONDAY)))

    def test_higher_minimum(self, make_schedule, make_entry):
        config = RulesConfig(min_competent_staff=2)
        s = make_schedule([make_entry("e1", "alice", MONDAY)])
        found = evaluate(s, candidate("bob", MONDAY), config)
        assert rules(found) == [RuleType.MIN_COMPETENT_STAFF]
        assert found[0].additional_info["required"] == 2

    def test_no_package_tasks(self, make_schedule):
        found = evaluate(make_schedule(task_ids=()), candidate("bob", MONDAY))
        assert rules(found) == [RuleType.NO_PACKAGE_TASKS]
        assert found[0].severity is Severity.WARNING
        assert found[0].message == "Package has no tasks assigned"


class TestWeeklyHours:
    """WEEKLY_HOUR_LIMIT boundary behaviour."""

    def _full_week(self, make_entry):
        # 4 x 8h + 4h = 36h
        entries = [make_entry(f"e{i}", "alice", MONDAY + timedelta(days=i)) for i in range(4)]
        entries.append(make_entry("e4", "alice", MONDAY + timedelta(days=4), end=time(13)))
        return entries

    def test_exactly_at_limit_is_allowed(self, make_schedule, make_entry):
        s = make_schedule(self._full_week(make_entry))
        c = candidate("alice", SATURDAY, start=time(9), end=time(9))
        assert weekly_hours(s, c.as_entry()) == 36
        assert evaluate(s, c) == []

    def test_one_minute_over(self, make_schedule, make_entry):
        s = make_schedule(self._full_week(make_entry))
        found = evaluate(s, candidate("alice", SATURDAY, start=time(9), end=time(9, 1)))
        assert rules(found) == [RuleType.WEEKLY_HOUR_LIMIT]
        assert found[0].message == "Alice would exceed weekly hours (36.02/36)"

    def test_counts_other_packages(self, make_schedule, make_entry):
        other = [make_entry(f"h{i}", "alice", MONDAY + timedelta(days=i), package_id="pkg-2") for i in range(4)]
        s = make_schedule(history=other)
        found = evaluate(s, candidate("alice", SATURDAY))
        assert rules(found) == [RuleType.WEEKLY_HOUR_LIMIT]
        info = found[0].additional_info
        assert info["currentHours"] == 32
        assert info["proposedHours"] == 40

    def test_previous_week_not_counted(self, make_schedule, make_entry):
        prior = [make_entry(f"h{i}", "alice", MONDAY - timedelta(days=7 - i)) for i in range(5)]
        s = make_schedule(history=prior)
        assert weekly_hours(s, candidate("alice", MONDAY).as_entry()) == 0

    def test_two_day_shifts_under_limit(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY)])
        assert RuleType.WEEKLY_HOUR_LIMIT not in rules(evaluate(s, candidate("alice", TUESDAY)))


class TestRestPeriod:
    """REST_PERIOD_VIOLATION."""

    def test_day_after_night(self, make_schedule, make_entry):
        night = make_entry("n1", "alice", MONDAY, ShiftType.NIGHT, start=time(5), end=time(13))
        s = make_schedule([night])
        found = evaluate(s, candidate("alice", TUESDAY))
        assert rules(found) == [RuleType.REST_PERIOD_VIOLATION]
        v = found[0]
        assert v.is_error
        assert v.additional_info["gapHours"] == 20
        assert v.message == (
            "Alice needs rest after night shift: 20h between the night shift on Mon 04 Aug "
            "and the day shift on Tue 05 Aug (minimum 48h)"
        )

    def test_night_before_existing_day(self, make_schedule, make_entry):
        s = make_schedule([make_entry("d1", "alice", TUESDAY)])
        found = evaluate(s, candidate("alice", MONDAY, ShiftType.NIGHT))
        assert rules(found) == [RuleType.REST_PERIOD_VIOLATION]
        assert found[0].additional_info["gapHours"] == 2

    def test_exact_rest_is_allowed(self, make_schedule, make_entry):
        s = make_schedule([make_entry("n1", "alice", MONDAY, ShiftType.NIGHT)])
        c = candidate("alice", MONDAY + timedelta(days=3), start=time(7), end=time(15))
        assert evaluate(s, c) == []

    def test_warning_band(self, make_schedule, make_entry):
        config = RulesConfig(rest_warning_band_hours=12)
        s = make_schedule([make_entry("n1", "alice", MONDAY, ShiftType.NIGHT)])
        c = candidate("alice", MONDAY + timedelta(days=3), start=time(15), end=time(23))
        found = evaluate(s, c, config)
        assert rules(found) == [RuleType.REST_PERIOD_VIOLATION]
        assert found[0].severity is Severity.WARNING
        assert found[0].additional_info["gapHours"] == 56

    def test_uses_previous_week_history(self, make_schedule, make_entry):
        sunday_night = make_entry("h1", "alice", MONDAY - timedelta(days=1), ShiftType.NIGHT)
        s = make_schedule(history=[sunday_night])
        found = evaluate(s, candidate("alice", MONDAY))
        assert rules(found) == [RuleType.REST_PERIOD_VIOLATION]

    def test_closest_pair_reported(self, make_schedule, make_entry):
        s = make_schedule([
            make_entry("n1", "alice", MONDAY, ShiftType.NIGHT),
            make_entry("n2", "alice", TUESDAY, ShiftType.NIGHT),
        ])
        night, day, gap = closest_pair(s, candidate("alice", TUESDAY + timedelta(days=1)).as_entry())
        assert night.id == "n2"
        assert gap == 2


class TestConsecutiveWeekends:

    def test_previous_weekend_calendar(self):
        assert previous_weekend(SATURDAY, WeekendLookback.CALENDAR) == [date(2025, 8, 2), date(2025, 8, 3)]
        assert previous_weekend(SATURDAY + timedelta(days=1), WeekendLookback.CALENDAR) == [
            date(2025, 8, 2), date(2025, 8, 3),
        ]

    def test_previous_weekend_rolling(self):
        assert previous_weekend(SATURDAY, WeekendLookback.ROLLING) == [date(2025, 8, 2)]

    def test_worked_last_weekend(self, make_schedule, make_entry):
        s = make_schedule(history=[make_entry("h1", "alice", date(2025, 8, 3), ShiftType.NIGHT)])
        found = evaluate(s, candidate("alice", SATURDAY))
        assert rules(found) == [RuleType.CONSECUTIVE_WEEKENDS]
        v = found[0]
        assert v.severity is Severity.WARNING
        assert v.message == "Alice worked last weekend"
        assert v.additional_info["previousWeekendDates"] == [date(2025, 8, 3)]

    def test_rolling_looks_at_same_weekday(self, make_schedule, make_entry):
        config = RulesConfig(weekend_lookback="rolling")
        s = make_schedule(history=[make_entry("h1", "alice", date(2025, 8, 3), ShiftType.NIGHT)])
        assert evaluate(s, candidate("alice", SATURDAY), config) == []

    def test_weekday_not_checked(self, make_schedule, make_entry):
        s = make_schedule(history=[make_entry("h1", "alice", date(2025, 8, 3), ShiftType.NIGHT)])
        assert RuleType.CONSECUTIVE_WEEKENDS not in rules(evaluate(s, candidate("alice", TUESDAY)))


class TestRotationPattern:

    def _last_week(self, make_entry, shift_type):
        return [make_entry(f"h{i}", "alice", MONDAY - timedelta(days=7 - i), shift_type) for i in range(2)]

    def test_same_type_two_weeks(self, make_schedule, make_entry):
        s = make_schedule(history=self._last_week(make_entry, ShiftType.DAY))
        found = evaluate(s, candidate("alice", MONDAY))
        assert rules(found) == [RuleType.ROTATION_PATTERN]
        assert found[0].message == "Alice worked day shifts last week"
        assert found[0].severity is Severity.WARNING

    def test_alternating_type(self, make_schedule, make_entry):
        s = make_schedule(history=self._last_week(make_entry, ShiftType.DAY))
        assert evaluate(s, candidate("alice", MONDAY, ShiftType.NIGHT)) == []

    def test_disabled(self, make_schedule, make_entry):
        s = make_schedule(history=self._last_week(make_entry, ShiftType.DAY))
        config = RulesConfig(rotation_pattern_enabled=False)
        assert evaluate(s, candidate("alice", MONDAY), config) == []


class TestScan:
    """Whole-schedule scans."""

    def test_slot_violation_reported_once(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "bob", MONDAY), make_entry("e2", "dan", MONDAY)])
        standing = scan_schedule(s)
        assert rules(standing).count(RuleType.MIN_COMPETENT_STAFF) == 1
        assert rules(standing).count(RuleType.COMPETENCY_PAIRING) == 2

    def test_duplicate_pair_reported_once(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY), make_entry("e2", "alice", MONDAY)])
        assert rules(scan_schedule(s)) == [RuleType.DUPLICATE_SHIFT]

    def test_entry_not_compared_with_itself(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY)])
        assert scan_schedule(s) == []

    def test_deterministic(self, make_schedule, make_entry):
        s = make_schedule([
            make_entry("e1", "bob", MONDAY),
            make_entry("n1", "alice", MONDAY, ShiftType.NIGHT),
            make_entry("e2", "alice", TUESDAY),
        ])
        assert scan_schedule(s) == scan_schedule(s)
        assert [v.key for v in scan_schedule(s)] == [v.key for v in scan_schedule(s)]


class TestRemoval:

    def test_removing_only_supervisor(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY), make_entry("e2", "bob", MONDAY)])
        found = evaluate_removal(s, "e1")
        assert rules(found) == [RuleType.MIN_COMPETENT_STAFF]

    def test_removing_trainee(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY), make_entry("e2", "bob", MONDAY)])
        assert evaluate_removal(s, "e2") == []

    def test_emptying_slot(self, make_schedule, make_entry):
        s = make_schedule([make_entry("e1", "alice", MONDAY)])
        assert evaluate_removal(s, s.find_entry("e1")) == []

    def test_unknown_entry(self, make_schedule):
        assert evaluate_removal(make_schedule(), "missing") == []
