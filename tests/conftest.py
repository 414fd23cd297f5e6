"""Pytest configuration and fixtures."""
import sys
from datetime import date, timedelta
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import structlog

from carerota.backend.memory import InMemoryRotaBackend
from carerota.models.carer import Carer, CompetencyLevel, CompetencyRating
from carerota.models.package import CarePackage
from carerota.models.rules import RulesConfig
from carerota.models.schedule import ShiftEntry, WeeklySchedule
from carerota.models.shift import DEFAULT_SHIFT_TIMES, ShiftType

PACKAGE_ID = "pkg-1"
TASKS = ["task-1", "task-2"]

# A Monday
MONDAY = date(2025, 8, 4)


def _carer(carer_id, name, level=None):
    ratings = [CompetencyRating(task_id="task-1", level=level)] if level else []
    return Carer(id=carer_id, name=name, email=f"{carer_id}@example.org", competency_ratings=ratings)


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def config():
    """Default rules."""
    return RulesConfig()


@pytest.fixture
def carers():
    """Package roster: two competent carers, two who are not."""
    return [
        _carer("alice", "Alice", CompetencyLevel.COMPETENT),
        _carer("bob", "Bob", CompetencyLevel.NOT_COMPETENT),
        _carer("cara", "Cara", CompetencyLevel.PROFICIENT),
        _carer("dan", "Dan"),
    ]


@pytest.fixture
def make_entry():
    """Factory for shift entries on pkg-1 with default slot times."""
    def _make(entry_id, carer_id, on, shift_type=ShiftType.DAY, start=None, end=None,
              package_id=PACKAGE_ID, is_confirmed=False):
        default_start, default_end = DEFAULT_SHIFT_TIMES[shift_type]
        return ShiftEntry(
            id=entry_id,
            package_id=package_id,
            carer_id=carer_id,
            date=on,
            shift_type=shift_type,
            start_time=start or default_start,
            end_time=end or default_end,
            is_confirmed=is_confirmed,
        )
    return _make


@pytest.fixture
def make_schedule(carers):
    """Factory for a pkg-1 weekly schedule starting MONDAY."""
    def _make(entries=(), history=(), week_start=MONDAY, task_ids=TASKS, roster=None):
        return WeeklySchedule.build(
            package_id=PACKAGE_ID,
            week_start=week_start,
            entries=entries,
            package_carers=roster if roster is not None else carers,
            package_task_ids=task_ids,
            history=history,
        )
    return _make


@pytest.fixture
def backend(carers):
    """In-memory backend holding pkg-1, pkg-2 and the roster."""
    b = InMemoryRotaBackend()
    b.add_package(CarePackage(id=PACKAGE_ID, name="Rose Cottage", postcode="AB1 2CD"), TASKS)
    b.add_package(CarePackage(id="pkg-2", name="Elm House", postcode="EF3 4GH"), TASKS)
    for c in carers:
        b.add_carer(c, [PACKAGE_ID])
    return b


@pytest.fixture
def week_dates():
    return [MONDAY + timedelta(days=i) for i in range(7)]


@pytest.fixture(autouse=True)
def structlog_defaults():
    """The CLI configures structlog process-wide; undo it after each test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
