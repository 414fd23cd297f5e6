"""CSV loading and saving for carers, packages and rota entries."""
from fractions import Fraction
from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd

from carerota.backend.memory import InMemoryRotaBackend
from carerota.models.carer import Carer, CompetencyLevel, CompetencyRating
from carerota.models.package import CarePackage
from carerota.models.rules import RulesConfig
from carerota.models.schedule import ShiftEntry
from carerota.models.shift import format_time
from carerota.utils.logging_setup import get_logger, log_function_call

logger = get_logger("carerota.io.csv_loader")

Source = Union[str, Path, pd.DataFrame]

ENTRY_COLUMNS = [
    "id", "package_id", "carer_id", "date", "shift_type",
    "start_time", "end_time", "is_confirmed",
]


def _safe_bool(value, default: bool = False) -> bool:
    """Safely convert value to bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if not value.strip():
            return default
        return value.strip().lower() in ("1", "true", "yes", "y")
    return default


def _safe_hours(value, default: int = 36) -> Fraction:
    """Safely convert value to exact hours."""
    try:
        return Fraction(str(value).strip()).limit_denominator(60)
    except (ValueError, ZeroDivisionError):
        return Fraction(default)


def _split(value) -> List[str]:
    return [p.strip() for p in str(value).split(";") if p.strip()]


def _read(source: Source, required: List[str]) -> pd.DataFrame:
    if isinstance(source, pd.DataFrame):
        df = source.copy()
    else:
        df = pd.read_csv(source, dtype=str)
    df = df.fillna("")
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"CSV must have columns: {', '.join(missing)}")
    return df


def parse_ratings(value) -> List[CompetencyRating]:
    """``task-1:COMPETENT;task-2:EXPERT`` -> ratings."""
    ratings = []
    for part in _split(value):
        task_id, _, level = part.partition(":")
        ratings.append(CompetencyRating(task_id=task_id.strip(), level=CompetencyLevel.from_string(level)))
    return ratings


def load_carers(source: Source) -> List[Tuple[Carer, List[str]]]:
    """
    Load carers from CSV file or DataFrame.

    Columns: id, name, email, ratings (``task:LEVEL;...``), packages
    (``pkg-1;pkg-2``, rosters the carer belongs to).

    Returns:
        (Carer, package ids) pairs
    """
    df = _read(source, ["id", "name"])
    carers = []
    for _, row in df.iterrows():
        name = str(row["name"]).strip()
        if not name:
            continue
        carer = Carer(
            id=str(row["id"]).strip() or name,
            name=name,
            email=str(row.get("email", "")).strip(),
            competency_ratings=parse_ratings(row.get("ratings", "")),
        )
        carers.append((carer, _split(row.get("packages", ""))))
    return carers


def load_packages(source: Source) -> List[Tuple[CarePackage, List[str]]]:
    """
    Load care packages from CSV file or DataFrame.

    Columns: id, name, postcode, is_active, total_hours, tasks (``task-1;task-2``).

    Returns:
        (CarePackage, task ids) pairs
    """
    df = _read(source, ["id", "name"])
    packages = []
    for _, row in df.iterrows():
        package = CarePackage(
            id=str(row["id"]).strip(),
            name=str(row["name"]).strip(),
            postcode=str(row.get("postcode", "")).strip(),
            is_active=_safe_bool(row.get("is_active", ""), True),
            total_hours=_safe_hours(row.get("total_hours", "") or 36),
        )
        packages.append((package, _split(row.get("tasks", ""))))
    return packages


def load_entries(source: Source) -> List[ShiftEntry]:
    """Load rota entries; rows with an unknown shift type or date are skipped with a warning."""
    df = _read(source, ["package_id", "carer_id", "date", "shift_type", "start_time", "end_time"])
    entries = []
    for idx, row in df.iterrows():
        try:
            entries.append(ShiftEntry(
                id=str(row.get("id", "")).strip(),
                package_id=str(row["package_id"]).strip(),
                carer_id=str(row["carer_id"]).strip(),
                date=str(row["date"]).strip(),
                shift_type=str(row["shift_type"]).strip(),
                start_time=str(row["start_time"]).strip(),
                end_time=str(row["end_time"]).strip(),
                is_confirmed=_safe_bool(row.get("is_confirmed", "")),
            ))
        except ValueError as e:
            logger.warning(f"Skipping entry row {idx}: {e}")
    return entries


def save_entries(entries: List[ShiftEntry], path: Union[str, Path]) -> None:
    """
    Save rota entries to CSV file.

    Args:
        entries: Entries to write
        path: Output path
    """
    rows = [
        {
            "id": e.id,
            "package_id": e.package_id,
            "carer_id": e.carer_id,
            "date": e.date.isoformat(),
            "shift_type": e.shift_type.value,
            "start_time": format_time(e.start_time),
            "end_time": format_time(e.end_time),
            "is_confirmed": int(e.is_confirmed),
        }
        for e in entries
    ]
    pd.DataFrame(rows, columns=ENTRY_COLUMNS).to_csv(path, index=False)


@log_function_call
def build_backend(
    carers: Source,
    packages: Source,
    entries: Optional[Source] = None,
    config: Optional[RulesConfig] = None,
) -> InMemoryRotaBackend:
    """In-memory backend seeded from CSV data (entries bypass the rules, as imported history)."""
    backend = InMemoryRotaBackend(config=config)
    for package, tasks in load_packages(packages):
        backend.add_package(package, tasks)
    for carer, package_ids in load_carers(carers):
        backend.add_carer(carer, package_ids)
    if entries is not None:
        for entry in load_entries(entries):
            backend.add_entry(entry)
    logger.info(f"Loaded {len(backend.packages)} packages, {len(backend.carers)} carers, "
                f"{len(backend.entries)} entries")
    return backend
