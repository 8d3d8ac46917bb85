"""netpresence -- entry point.

Usage::

    python -m netpresence [--config PATH] [--granularity NAME] [--window DAYS]
                          [--preset weekly|daily] [--from DATE] [--to DATE]
                          [--totals] [--no-fetch]

Startup sequence:
    1. Parse CLI arguments
    2. Load configuration from YAML (or defaults)
    3. Open the SQLite scan cache and run migrations
    4. Backfill daily logs, then import the static log files
    5. Aggregate the cached scans and print chart series (or the totals
       table) as JSON on stdout
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from netpresence.aggregate.devices import collect_device_infos, summarize_devices
from netpresence.aggregate.engine import build_series
from netpresence.aggregate.rounding import (
    GRANULARITIES,
    PRESETS,
    Rounder,
    between,
    compose,
    within_last,
)
from netpresence.config import Settings, load_settings
from netpresence.db.store import ScanStore, open_store
from netpresence.ingest.backfill import BackfillScheduler
from netpresence.ingest.controller import IngestionController
from netpresence.scanner.parser import ParseContext
from netpresence.scanner.source import SourceFetchError, create_log_source

logger = logging.getLogger("netpresence")


# ---------------------------------------------------------------------------
# Integration seams -- module-level so tests can patch them individually.
# ---------------------------------------------------------------------------


def load_config(config_path: str | None) -> Settings:
    path = Path(config_path) if config_path else None
    return load_settings(config_path=path)


def create_scheduler(settings: Settings, store: ScanStore) -> BackfillScheduler:
    """Wire the log source, parser context and controller together."""
    controller = IngestionController(
        store,
        create_log_source(settings),
        ParseContext(self_mac_address=settings.devices.self_mac_address),
        log_files_path=settings.sources.log_files_path,
        batch_size=settings.sources.batch_size,
    )
    return BackfillScheduler.from_settings(controller, settings)


def build_rounder(
    granularity: str,
    window_days: float | None = None,
    preset: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Rounder:
    offsetters: list[Rounder] = []
    if window_days is not None:
        offsetters.append(within_last(window_days))
    if start is not None or end is not None:
        offsetters.append(between(start, end))
    if preset is not None:
        offsetters.append(PRESETS[preset])
    return compose(GRANULARITIES[granularity], *offsetters)


def _log_days(days: int) -> None:
    logger.info("Loading: %d days", days)


def _log_files(state: str, done: int, total: int) -> None:
    logger.info("%s %d/%d logs", state, done, total)


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Parameters
    ----------
    argv:
        Argument list.  Defaults to ``sys.argv[1:]`` when ``None``.
    """
    parser = argparse.ArgumentParser(
        prog="netpresence",
        description="Who's in my network? Uptime statistics from nmap scan logs",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--granularity",
        choices=list(GRANULARITIES),
        default="3 hourly",
        help="Bucket size (default: 3 hourly)",
    )
    parser.add_argument(
        "--window",
        type=float,
        default=None,
        help="Only chart the last N days",
    )
    parser.add_argument(
        "--preset",
        choices=list(PRESETS),
        default=None,
        help="Fold all weeks or days onto one axis",
    )
    parser.add_argument(
        "--from",
        dest="start",
        type=datetime.fromisoformat,
        default=None,
        help="Only chart buckets starting at or after this local time (ISO 8601)",
    )
    parser.add_argument(
        "--to",
        dest="end",
        type=datetime.fromisoformat,
        default=None,
        help="Only chart buckets starting at or before this local time (ISO 8601)",
    )
    parser.add_argument(
        "--totals",
        action="store_true",
        default=False,
        help="Print the per-device totals table instead of chart series",
    )
    parser.add_argument(
        "--no-fetch",
        action="store_true",
        default=False,
        help="Only use already cached scans",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Main run coroutine
# ---------------------------------------------------------------------------


async def run_report(
    config_path: str | None = None,
    granularity: str = "3 hourly",
    window_days: float | None = None,
    preset: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    totals: bool = False,
    fetch: bool = True,
) -> list[dict[str, Any]]:
    """Update the cache and return the requested report as JSON-ready dicts."""
    settings = load_config(config_path)
    store = await open_store(
        settings.store.db_path, device_names=settings.devices.device_names
    )
    try:
        if fetch:
            scheduler = create_scheduler(settings, store)
            await scheduler.run(days_callback=_log_days, files_callback=_log_files)

        snapshots = await store.all_snapshots()
        infos = await collect_device_infos(store, snapshots)
        logger.info("%d scans of %d devices in cache", len(snapshots), len(infos))

        if totals:
            rows = summarize_devices(infos, settings)
            return [row.model_dump(mode="json") for row in rows]

        rounder = build_rounder(granularity, window_days, preset, start, end)
        series = build_series(snapshots, rounder, infos, settings)
        return [s.model_dump(mode="json") for s in series]
    finally:
        await store.close()


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI args, update the cache and print the report."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args = parse_args()

    try:
        report = asyncio.run(
            run_report(
                config_path=args.config,
                granularity=args.granularity,
                window_days=args.window,
                preset=args.preset,
                start=args.start,
                end=args.end,
                totals=args.totals,
                fetch=not args.no_fetch,
            )
        )
    except SourceFetchError:
        logger.exception("Fetching scan logs failed")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)

    json.dump(report, sys.stdout, indent=2)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
