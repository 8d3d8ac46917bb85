"""Fetch-and-cache pipeline for nmap log files.

A log file is fetched at most once: afterwards its marker answers for it
(``success`` or ``404``) until the caller forces a refetch. Fetched files
are split into scan documents and committed in fixed-size batches, one
transaction per batch.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date
from itertools import islice
from typing import Callable, Iterable, Iterator, TypeVar

from netpresence.db.store import ScanStore
from netpresence.models import FetchOutcome
from netpresence.scanner.parser import ParseContext, parse_scan, split_documents
from netpresence.scanner.source import LogSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (state, documents done, documents total)
ProgressCallback = Callable[[str, int, int], None]

DEFAULT_BATCH_SIZE = 200


def _chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    iterator = iter(items)
    while batch := list(islice(iterator, size)):
        yield batch


class IngestionController:
    """Fetches log files into the scan cache.

    Parameters
    ----------
    store:
        Scan cache receiving snapshots, facts and markers.
    source:
        Where log files are fetched from.
    context:
        Parser settings (reference device id).
    log_files_path:
        Prefix of the daily ``YYYY-MM-DD.xml`` logs.
    batch_size:
        Scan documents committed per transaction.
    """

    def __init__(
        self,
        store: ScanStore,
        source: LogSource,
        context: ParseContext,
        *,
        log_files_path: str = "./logs/",
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._store = store
        self._source = source
        self._context = context
        self._log_files_path = log_files_path
        self._batch_size = max(1, batch_size)

    def source_key_for_date(self, day: date) -> str:
        return f"{self._log_files_path}{day.isoformat()}.xml"

    async def get_for_date(self, day: date, force_fetch: bool = False) -> FetchOutcome:
        """Fetch the daily log for *day*."""
        return await self.get_for_file(self.source_key_for_date(day), force_fetch=force_fetch)

    async def get_for_file(
        self,
        source_key: str,
        progress_callback: ProgressCallback | None = None,
        force_fetch: bool = False,
    ) -> FetchOutcome:
        """Make sure *source_key* is in the cache.

        Returns the stored outcome without fetching when a marker exists and
        *force_fetch* is false. A missing file is remembered as ``404`` for
        good; any other fetch failure raises ``SourceFetchError`` and leaves
        no marker, so the next call tries again.
        """
        if not force_fetch:
            marker = await self._store.get_marker(source_key)
            if marker is not None:
                return marker.outcome

        raw = await self._source.fetch(source_key)
        if raw is None:
            await self._store.put_marker(source_key, FetchOutcome.NOT_FOUND)
            logger.info("No log at %s", source_key)
            return FetchOutcome.NOT_FOUND

        documents = split_documents(raw)
        total = len(documents)
        logger.info("Loading %d scans from %s", total, source_key)

        done = 0
        recorded = 0
        for batch in _chunked(documents, self._batch_size):
            async with self._store.transaction():
                for document in batch:
                    scan = parse_scan(self._context, source_key, document)
                    if scan is not None:
                        await self._store.put_scan(scan)
                        recorded += 1
            done += len(batch)
            if progress_callback is not None:
                progress_callback("loading", done, total)
            # Let the caller's event loop breathe between batches
            await asyncio.sleep(0)

        await self._store.put_marker(source_key, FetchOutcome.SUCCESS)
        logger.info(
            "Cached %s: %d scans recorded, %d skipped", source_key, recorded, total - recorded
        )
        return FetchOutcome.SUCCESS
