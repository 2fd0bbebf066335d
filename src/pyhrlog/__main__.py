"""Command-line runner: follow HypeRate trackers and log their heart rate.

Reads ``HRLOG_*`` environment variables and the JSON settings file, renders
every registry update to the console and stores fresh readings when
``sqlEnabled`` is set. Stops cleanly on Ctrl+C / SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Mapping

from pyhrlog.client import HeartRateLogger
from pyhrlog.config import HrLogConfig
from pyhrlog.exceptions import HrLogConfigError
from pyhrlog.state.models import TrackerState

_LOG = logging.getLogger("pyhrlog")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pyhrlog",
        description="Log live HypeRate heart-rate readings.",
    )
    parser.add_argument(
        "--settings",
        default=None,
        help="Path of the JSON settings file (default: $HRLOG_SETTINGS_PATH or ./config.json).",
    )
    parser.add_argument(
        "--add",
        nargs=2,
        action="append",
        default=[],
        metavar=("ID", "NAME"),
        help="Register a tracker at startup (repeatable). New ids are saved to the settings file.",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Do not print registry updates.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args(argv)


def format_snapshot(snapshot: Mapping[str, TrackerState]) -> str:
    """One-line console rendering of the registry."""
    parts = []
    for tracker_id, state in sorted(snapshot.items()):
        label = state.name or tracker_id
        value = "--" if state.heart_rate is None else str(state.heart_rate)
        parts.append(f"{label}: {value}")
    return " | ".join(parts)


def _print_snapshot(snapshot: Mapping[str, TrackerState]) -> None:
    print(f"[hr] {format_snapshot(snapshot)}", flush=True)


async def _run(config: HrLogConfig, args: argparse.Namespace) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            signal.signal(signum, lambda _signum, _frame: loop.call_soon_threadsafe(stop.set))

    hrlog = HeartRateLogger(config, on_update=None if args.quiet else _print_snapshot)
    for tracker_id, name in args.add:
        await hrlog.add_tracker(tracker_id, name)
    if len(hrlog.registry) == 0:
        _LOG.warning("No trackers configured; use --add ID NAME or edit %s", config.settings_path)

    async with hrlog:
        await stop.wait()
        _LOG.info("Shutting down")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {"settings_path": args.settings} if args.settings else {}
    config = HrLogConfig.from_env(**overrides)
    try:
        return asyncio.run(_run(config, args))
    except HrLogConfigError as exc:
        print(f"[hr] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
