"""
Results Export
==============
Writes scan results to CSV (one row per violation) or JSON (schedule, per-carer
totals and violations) for review outside the application.
"""
import json
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd

from carerota.models.schedule import WeeklySchedule
from carerota.models.violation import RuleViolation
from carerota.utils.logging_setup import get_logger

logger = get_logger("carerota.io.results_export")

RESULTS_DIR = Path("results")

VIOLATION_COLUMNS = ["rule", "severity", "carer_id", "carer_name", "message", "key"]


def violations_to_dataframe(violations: Iterable[RuleViolation]) -> pd.DataFrame:
    """One row per violation, in the order given."""
    rows = [
        {
            "rule": v.rule.value,
            "severity": v.severity.value,
            "carer_id": v.carer_id or "",
            "carer_name": v.carer_name or "",
            "message": v.message,
            "key": v.key,
        }
        for v in violations
    ]
    return pd.DataFrame(rows, columns=VIOLATION_COLUMNS)


def export_violations_csv(violations: Iterable[RuleViolation], path: Union[str, Path]) -> Path:
    path = Path(path)
    violations_to_dataframe(violations).to_csv(path, index=False)
    logger.info(f"Violations exported to {path}")
    return path


def export_scan(
    schedule: WeeklySchedule,
    violations: List[RuleViolation],
    run_name: Optional[str] = None,
    results_dir: Path = RESULTS_DIR,
) -> Path:
    """
    Export a whole-schedule scan to JSON.

    Args:
        schedule: Scanned schedule
        violations: Standing violations found
        run_name: File stem, defaults to ``scan_<package>_<week>``
        results_dir: Output directory (created if missing)

    Returns:
        Path to the exported JSON file
    """
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    run_name = run_name or f"scan_{schedule.package_id}_{schedule.week_start.isoformat()}"
    output_path = results_dir / f"{run_name}.json"

    carers = [
        {**s, "total_hours": float(s["total_hours"])}
        for s in schedule.carer_stats()
    ]
    result = {
        "meta": {
            "timestamp": datetime.now().isoformat(),
            "run_name": run_name,
        },
        "schedule": schedule.to_dict(),
        "carers": carers,
        "summary": {
            "entries": len(schedule.entries),
            "errors": sum(1 for v in violations if v.is_error),
            "warnings": sum(1 for v in violations if not v.is_error),
        },
        "violations": [v.to_dict() for v in violations],
    }

    with open(output_path, "w") as f:
        json.dump(result, f, indent=2, ensure_ascii=False)

    logger.info(f"Scan exported to {output_path}")
    return output_path
