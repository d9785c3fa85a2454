"""CLI entrypoint for scenario validation and simulation."""

from __future__ import annotations

import argparse
import csv
import json
import logging
from pathlib import Path
from typing import Any

from vm_sim.core import SimEngine
from vm_sim.io import ConfigError, ConfigLoader
from vm_sim.schedulers import SchedulerConfigError


logger = logging.getLogger(__name__)

LOGGING_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGING_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _write_jsonl(path: str, rows: list[dict[str, Any]]) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")


def _write_json(path: str, payload: dict[str, Any]) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def _write_events_csv(path: str, rows: list[dict[str, Any]]) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = ["event_id", "seq", "correlation_id", "time", "type", "task_id", "vm_id", "payload"]
    with output.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(
                {
                    "event_id": row.get("event_id"),
                    "seq": row.get("seq"),
                    "correlation_id": row.get("correlation_id"),
                    "time": row.get("time"),
                    "type": row.get("type"),
                    "task_id": row.get("task_id"),
                    "vm_id": row.get("vm_id"),
                    "payload": json.dumps(row.get("payload", {}), ensure_ascii=False),
                }
            )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOGGING_FORMAT,
        datefmt=LOGGING_DATEFMT,
    )


def cmd_validate(args: argparse.Namespace) -> int:
    loader = ConfigLoader()
    try:
        spec = loader.load(args.config)
    except ConfigError as exc:
        print(f"[ERROR] {args.config}: {exc}")
        return 1
    try:
        # Scheduler names and params must resolve during validate.
        SimEngine().build(spec)
    except ValueError as exc:
        print(f"[ERROR] {args.config}: {exc}")
        return 1
    print("[OK] config validation passed")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    loader = ConfigLoader()
    try:
        spec = loader.load(args.config)
    except ConfigError as exc:
        print(f"[ERROR] {exc}")
        return 1

    if args.until is not None and args.until <= 0:
        print("[ERROR] --until must be > 0")
        return 1

    engine = SimEngine()
    try:
        engine.build(spec)
        engine.run(until=args.until)
    except (SchedulerConfigError, ValueError) as exc:
        logger.error("simulation aborted: %s", exc)
        print(f"[ERROR] {exc}")
        return 1

    events = [event.model_dump(mode="json") for event in engine.events]
    metrics = engine.metric_report()
    metrics["utilization"] = engine.utilization_snapshot()

    events_out = args.events_out or "artifacts/events.jsonl"
    metrics_out = args.metrics_out or "artifacts/metrics.json"
    _write_jsonl(events_out, events)
    _write_json(metrics_out, metrics)
    if args.events_csv_out:
        _write_events_csv(args.events_csv_out, events)

    print(
        f"[OK] simulation completed, events={len(events)}, now={engine.now:.3f}, "
        f"metrics={metrics_out}"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vm-sim", description="VM task scheduling simulation CLI")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="validate scenario file")
    validate_parser.add_argument("-c", "--config", required=True, help="path to scenario YAML/JSON")
    validate_parser.set_defaults(func=cmd_validate)

    run_parser = subparsers.add_parser("run", help="run scenario")
    run_parser.add_argument("-c", "--config", required=True, help="path to scenario YAML/JSON")
    run_parser.add_argument("--until", type=float, default=None, help="override simulation duration")
    run_parser.add_argument("--events-out", default=None, help="path to write JSONL events")
    run_parser.add_argument("--events-csv-out", default=None, help="path to write CSV events")
    run_parser.add_argument("--metrics-out", default=None, help="path to write metric JSON")
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
