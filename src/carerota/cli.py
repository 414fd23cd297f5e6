from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from carerota.exceptions import RotaError
from carerota.io.config_loader import find_rules_config, load_rules_config
from carerota.io.csv_loader import build_backend
from carerota.io.results_export import export_violations_csv
from carerota.models.rules import RULES, RulesConfig
from carerota.models.shift import parse_date
from carerota.models.violation import RuleViolation
from carerota.services.validator import PlacementValidator
from carerota.state.session import SchedulingSession
from carerota.state.store import ScheduleStore
from carerota.utils.logging_setup import setup_logging
from carerota.utils.structured_logging import configure_structlog


def _config(args: argparse.Namespace) -> RulesConfig:
    path = args.config or find_rules_config()
    return load_rules_config(path) if path else RULES


def _print_violations(violations: List[RuleViolation]) -> None:
    if not violations:
        print("No violations.")
        return
    for v in violations:
        tag = "ERROR" if v.is_error else "WARN "
        print(f" [{tag}] {v.rule.value}: {v.message}")


async def _check(args: argparse.Namespace, config: RulesConfig) -> int:
    backend = build_backend(args.carers, args.packages, args.entries, config)
    session = SchedulingSession(args.package, parse_date(args.week))
    store = ScheduleStore(backend, session, config=config)
    schedule = await store.reload()
    violations = store.standing

    if args.export:
        export_violations_csv(violations, args.export)
    if args.json_out:
        print(json.dumps({
            "packageId": schedule.package_id,
            "weekStart": schedule.week_start.isoformat(),
            "entries": len(schedule.entries),
            "violations": [v.to_dict() for v in violations],
        }, ensure_ascii=False, indent=2))
    else:
        print(f"Package {schedule.package_id}, week of {schedule.week_start.isoformat()}: "
              f"{len(schedule.entries)} entries")
        _print_violations(violations)
    return 1 if any(v.is_error for v in violations) else 0


async def _validate(args: argparse.Namespace, config: RulesConfig) -> int:
    backend = build_backend(args.carers, args.packages, args.entries, config)
    validator = PlacementValidator(backend, config)
    result = await validator.validate(
        args.package, args.carer, parse_date(args.date), args.shift,
        start_time=args.start, end_time=args.end,
    )
    if args.json_out:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print("Valid placement." if result.is_valid else "Placement refused.")
        _print_violations(result.all)
    return 0 if result.is_valid else 1


def _add_data_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--carers", required=True, help="Carers CSV (id,name,email,ratings,packages)")
    p.add_argument("--packages", required=True, help="Care packages CSV (id,name,postcode,tasks)")
    p.add_argument("--entries", help="Rota entries CSV")
    p.add_argument("--package", required=True, help="Care package id")
    p.add_argument("--config", help="Rules JSON (defaults to ./carerota.json or ./rules.json)")
    p.add_argument("--json", dest="json_out", action="store_true", help="JSON output")
    p.add_argument("-v", "--verbose", action="count", default=0)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="carerota", description="Care rota rule checks")
    sub = p.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Scan one package week for standing violations")
    _add_data_args(check)
    check.add_argument("--week", required=True, help="Any date in the week (YYYY-MM-DD)")
    check.add_argument("--export", help="Write violations to this CSV")

    validate = sub.add_parser("validate", help="Check one placement without committing it")
    _add_data_args(validate)
    validate.add_argument("--carer", required=True, help="Carer id")
    validate.add_argument("--date", required=True, help="Shift date (YYYY-MM-DD)")
    validate.add_argument("--shift", required=True, choices=["DAY", "NIGHT", "day", "night"])
    validate.add_argument("--start", help="Start time HH:MM (default per shift type)")
    validate.add_argument("--end", help="End time HH:MM (default per shift type)")

    args = p.parse_args(argv)
    level = "DEBUG" if args.verbose > 1 else "INFO" if args.verbose else "WARNING"
    setup_logging(level=level, log_file=None, stream=sys.stderr)
    configure_structlog(json_output=args.json_out, level=logging.getLevelName(level), stream=sys.stderr)

    try:
        config = _config(args)
        runner = _check if args.command == "check" else _validate
        return asyncio.run(runner(args, config))
    except (ValueError, FileNotFoundError, RotaError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
