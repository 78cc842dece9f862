"""Command-line entry point: print the cycle report for a JSON history file.

    python -m src.cycle_engine history.json --offset 330

The file holds ``periods`` and optionally ``settings``, ``symptoms`` and
``moods``, in the same shape the engine accepts.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from src.config import configure_logging, get_settings
from src.cycle_engine.engine import CycleEngine
from src.models.cycle import serialize_report

logger = logging.getLogger("cyclecast.cli")


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="cyclecast",
        description=f"{settings.app_name} {settings.app_version}: cycle phase report",
    )
    parser.add_argument("history", type=Path, help="JSON file with periods, settings, symptoms, moods")
    parser.add_argument("--offset", default=None, help="UTC offset in minutes (inferred when omitted)")
    parser.add_argument("--indent", type=int, default=2)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        payload = json.loads(args.history.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Cannot read %s: %s", args.history, exc)
        return 1
    if not isinstance(payload, dict):
        logger.error("%s must hold a JSON object", args.history)
        return 1

    report = CycleEngine().report(
        payload.get("periods") or [],
        payload.get("settings"),
        symptoms=payload.get("symptoms"),
        moods=payload.get("moods"),
        offset_minutes=args.offset,
    )
    json.dump(serialize_report(report), sys.stdout, indent=args.indent)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
