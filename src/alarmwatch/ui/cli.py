from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from alarmwatch.app import add_known_units, list_known_units, scan
from alarmwatch.config import ConfigurationError, configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid number: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Interval must be greater than zero")
    return parsed


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch the dispatch board and record alarms")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Poll the dispatch board")
    scan_parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan cycle and exit",
    )
    scan_parser.add_argument(
        "--interval",
        type=_positive_float,
        default=None,
        help="Seconds between scan cycles (defaults to SCAN_INTERVAL_SECONDS or 15)",
    )

    units = subparsers.add_parser("units", help="Known unit registry commands")
    units_sub = units.add_subparsers(dest="units_command", required=True)
    units_add = units_sub.add_parser("add", help="Register department units")
    units_add.add_argument("unit_ids", nargs="+", metavar="UNIT_ID")
    units_sub.add_parser("list", help="List registered units")

    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.debug else logging.INFO)

    try:
        if parsed_args.command == "scan":
            asyncio.run(scan(once=parsed_args.once, interval=parsed_args.interval))
        elif parsed_args.command == "units" and parsed_args.units_command == "add":
            added = add_known_units(parsed_args.unit_ids)
            log.info("Added units: %s", ", ".join(sorted(added)) or "none (already known)")
        elif parsed_args.command == "units" and parsed_args.units_command == "list":
            for unit_id in list_known_units():
                print(unit_id)  # noqa: T201
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
