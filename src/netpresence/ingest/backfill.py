"""Historical backfill: walk the daily logs backwards from today.

The walk stops when ``max_missing_days`` consecutive days have no log (there
is no older history) or once ``day_get_limit`` days were found. The last
``recent_days`` days are always refetched because the scanner may still be
appending to them. Static archive files are imported afterwards.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from netpresence.config import Settings
from netpresence.ingest.controller import IngestionController, ProgressCallback
from netpresence.models import FetchOutcome

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackfillScheduler:
    """Drives ``IngestionController`` over days and static files.

    Parameters
    ----------
    controller:
        Controller used for every fetch.
    max_missing_days:
        Consecutive missing days that end the walk.
    day_get_limit:
        Days found after which the walk ends; ``None`` for no limit.
    recent_days:
        Days counting back from today (inclusive) that are always refetched.
    static_log_files:
        Extra log files imported after the daily walk.
    clock:
        Returns the current time; the walk starts at its UTC date.
    """

    def __init__(
        self,
        controller: IngestionController,
        *,
        max_missing_days: int = 7,
        day_get_limit: int | None = None,
        recent_days: int = 3,
        static_log_files: Sequence[str] = (),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._controller = controller
        self._max_missing_days = max_missing_days
        self._day_get_limit = day_get_limit
        self._recent_days = recent_days
        self._static_log_files = list(static_log_files)
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        controller: IngestionController,
        settings: Settings,
        clock: Callable[[], datetime] = _utc_now,
    ) -> BackfillScheduler:
        sources = settings.sources
        return cls(
            controller,
            max_missing_days=sources.max_missing_days,
            day_get_limit=sources.day_get_limit,
            recent_days=sources.recent_days,
            static_log_files=sources.static_log_files,
            clock=clock,
        )

    async def get_all_dates(
        self, progress_callback: Callable[[int], None] | None = None
    ) -> int:
        """Fetch daily logs backwards from today. Returns the days found."""
        today = self._clock().astimezone(timezone.utc).date()
        day = today
        failures = 0
        gotten = 0
        while True:
            force = (today - day).days < self._recent_days
            outcome = await self._controller.get_for_date(day, force_fetch=force)
            if outcome is FetchOutcome.NOT_FOUND:
                failures += 1
                if failures >= self._max_missing_days:
                    break
            else:
                failures = 0
                gotten += 1
                if progress_callback is not None:
                    progress_callback(gotten)
                if self._day_get_limit is not None and gotten >= self._day_get_limit:
                    break
            day -= timedelta(days=1)

        logger.info("Backfill finished at %s: %d days with logs", day.isoformat(), gotten)
        return gotten

    async def get_static_files(
        self, progress_callback: ProgressCallback | None = None
    ) -> None:
        """Import the configured static log files, in order."""
        for filename in self._static_log_files:
            await self._controller.get_for_file(filename, progress_callback)

    async def run(
        self,
        days_callback: Callable[[int], None] | None = None,
        files_callback: ProgressCallback | None = None,
    ) -> int:
        """Daily backfill followed by the static files."""
        gotten = await self.get_all_dates(days_callback)
        await self.get_static_files(files_callback)
        return gotten
