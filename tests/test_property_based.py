"""
Property-Based Tests with Hypothesis
====================================
Invariants of hour math, violation de-duplication and the rule engine that
must hold for arbitrary valid inputs.
"""
from datetime import date, time, timedelta
from fractions import Fraction

from hypothesis import given, settings, strategies as st

from carerota.engine import evaluate, scan_schedule
from carerota.models.carer import Carer, CompetencyLevel, CompetencyRating
from carerota.models.schedule import CandidateEntry, ShiftEntry, WeeklySchedule
from carerota.models.shift import ShiftType, shift_hours
from carerota.models.violation import RuleType, RuleViolation, Severity, aggregate, violation_key

MONDAY = date(2025, 8, 4)
CARER_IDS = ["c0", "c1", "c2", "c3"]
LEVELS = list(CompetencyLevel)

times = st.builds(time, st.integers(0, 23), st.integers(0, 59))
shift_types = st.sampled_from(list(ShiftType))


@st.composite
def rosters(draw):
    return [
        Carer(cid, cid.upper(), competency_ratings=[CompetencyRating("t1", draw(st.sampled_from(LEVELS)))])
        for cid in CARER_IDS
    ]


@st.composite
def schedules(draw):
    roster = draw(rosters())
    slots = draw(st.lists(
        st.tuples(st.sampled_from(CARER_IDS), st.integers(0, 6), shift_types),
        max_size=12,
        unique=True,
    ))
    entries = [
        ShiftEntry(f"e{i}", "pkg", cid, MONDAY + timedelta(days=d), s,
                   time(9) if s is ShiftType.DAY else time(21),
                   time(17) if s is ShiftType.DAY else time(7))
        for i, (cid, d, s) in enumerate(slots)
    ]
    return WeeklySchedule.build("pkg", MONDAY, entries, roster, package_task_ids=["t1"])


violations = st.builds(
    RuleViolation,
    rule=st.sampled_from(list(RuleType)),
    message=st.sampled_from(["a", "b", "c"]),
    severity=st.sampled_from(list(Severity)),
    carer_id=st.one_of(st.none(), st.sampled_from(CARER_IDS)),
    additional_info=st.dictionaries(st.sampled_from(["x", "y"]), st.integers()),
    unique_key=st.one_of(st.none(), st.sampled_from(["k1", "k2"])),
)


class TestShiftHoursProperties:
    """Exact hour arithmetic."""

    @given(start=times, end=times)
    def test_hours_in_range(self, start, end):
        h = shift_hours(start, end)
        assert 0 <= h < 24
        assert (h * 60).denominator == 1

    @given(start=times, end=times)
    def test_overnight_complement(self, start, end):
        """A shift and its reverse cover the whole day unless they are empty."""
        if start == end:
            assert shift_hours(start, end) == 0
        else:
            assert shift_hours(start, end) + shift_hours(end, start) == 24

    @given(minutes=st.lists(st.integers(0, 24 * 60 - 1), max_size=50))
    def test_sums_are_exact(self, minutes):
        total = sum((shift_hours(time(0), time(m // 60, m % 60)) for m in minutes), Fraction(0))
        assert total == Fraction(sum(minutes), 60)


class TestAggregateProperties:
    """De-duplication law of the canonical key."""

    @given(vs=st.lists(violations, max_size=20))
    def test_keys_unique(self, vs):
        keys = [violation_key(v) for v in aggregate(vs)]
        assert len(keys) == len(set(keys))

    @given(vs=st.lists(violations, max_size=20))
    def test_idempotent(self, vs):
        once = aggregate(vs)
        assert aggregate(once) == once

    @given(vs=st.lists(violations, max_size=20))
    def test_same_key_set(self, vs):
        assert {violation_key(v) for v in aggregate(vs)} == {violation_key(v) for v in vs}

    @given(vs=st.lists(violations, max_size=20))
    def test_first_occurrence_wins(self, vs):
        for v in aggregate(vs):
            first = next(x for x in vs if violation_key(x) == violation_key(v))
            assert first is v


class TestEngineProperties:
    """Determinism and purity of the rule engine."""

    @settings(max_examples=50)
    @given(schedule=schedules())
    def test_scan_deterministic(self, schedule):
        assert scan_schedule(schedule) == scan_schedule(schedule)

    @settings(max_examples=50)
    @given(schedule=schedules())
    def test_scan_has_no_duplicate_keys(self, schedule):
        keys = [v.key for v in scan_schedule(schedule)]
        assert len(keys) == len(set(keys))

    @settings(max_examples=50)
    @given(schedule=schedules(), cid=st.sampled_from(CARER_IDS), day=st.integers(0, 6), shift=shift_types)
    def test_evaluate_pure(self, schedule, cid, day, shift):
        before = schedule.to_dict()
        c = CandidateEntry("pkg", cid, MONDAY + timedelta(days=day), shift, time(9), time(17))
        first = evaluate(schedule, c)
        assert evaluate(schedule, c) == first
        assert schedule.to_dict() == before

    @settings(max_examples=50)
    @given(schedule=schedules(), cid=st.sampled_from(CARER_IDS), day=st.integers(0, 6), shift=shift_types)
    def test_competent_slot_never_understaffed(self, schedule, cid, day, shift):
        """A slot that already holds a competent carer never raises MIN_COMPETENT_STAFF."""
        on = MONDAY + timedelta(days=day)
        slot = schedule.slot_entries(on, shift)
        competent = [
            e for e in slot
            if schedule.carer(e.carer_id).ratings_by_task["t1"].is_competent
        ]
        c = CandidateEntry("pkg", cid, on, shift, time(9), time(17))
        found = [v.rule for v in evaluate(schedule, c)]
        if competent:
            assert RuleType.MIN_COMPETENT_STAFF not in found
            assert RuleType.COMPETENCY_PAIRING not in found
