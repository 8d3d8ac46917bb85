"""Keyed table store over the scan cache database.

``ScanStore`` is the single writer of the cache. Writes are grouped with
``transaction()``, which commits when the block completes and rolls back
(re-raising) when it fails, so earlier committed batches stay intact.
"""

from __future__ import annotations

import logging
import pathlib
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from netpresence.db import queries
from netpresence.db.migrations import apply_migrations
from netpresence.models import (
    DeviceInfo,
    FactKind,
    FetchOutcome,
    IngestionMarker,
    ParseResult,
    PresenceSnapshot,
)

logger = logging.getLogger(__name__)


class ScanStore:
    """Scan cache backed by one aiosqlite connection.

    Parameters
    ----------
    db:
        An open ``aiosqlite.Connection`` with the schema already applied.
    device_names:
        Configured display names, keyed by uppercase MAC address.
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        device_names: dict[str, str] | None = None,
    ) -> None:
        self._db = db
        self._device_names = device_names or {}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """All-or-nothing scope for a group of writes."""
        try:
            yield self._db
        except BaseException:
            await self._db.rollback()
            raise
        else:
            await self._db.commit()

    async def close(self) -> None:
        await self._db.close()

    # -- markers --

    async def get_marker(self, source_key: str) -> IngestionMarker | None:
        row = await queries.get_marker(self._db, source_key)
        if row is None:
            return None
        return IngestionMarker.model_validate(row)

    async def put_marker(self, source_key: str, outcome: FetchOutcome) -> None:
        async with self.transaction() as db:
            await queries.put_marker(db, source_key=source_key, outcome=outcome.value)

    # -- scans --

    async def put_scan(self, scan: ParseResult) -> None:
        """Upsert one parsed scan. Must run inside ``transaction()``."""
        await queries.put_snapshot(
            self._db, time=scan.online.time, devices=scan.online.devices
        )
        await queries.bulk_put_facts(
            self._db,
            ((fact.mac, fact.kind.value, fact.value) for fact in scan.new_infos),
        )

    async def all_snapshots(self) -> list[PresenceSnapshot]:
        rows = await queries.list_snapshots(self._db)
        return [
            PresenceSnapshot(time=row["time"], devices=frozenset(row["devices"]))
            for row in rows
        ]

    async def get_device_info(self, mac: str) -> DeviceInfo:
        """Summarize the facts known about one device."""
        facts = await queries.list_facts_for_mac(self._db, mac)

        def values(kind: FactKind) -> list[str]:
            return [fact["value"] for fact in facts if fact["kind"] == kind.value]

        return DeviceInfo(
            mac=mac,
            display_name=self._device_names.get(mac),
            vendors=[vendor for vendor in values(FactKind.VENDOR) if vendor],
            hostnames=values(FactKind.HOSTNAME),
            ips=values(FactKind.IP),
        )


async def open_store(
    db_path: pathlib.Path | str,
    device_names: dict[str, str] | None = None,
) -> ScanStore:
    """Open (creating if needed) the cache database and migrate it."""
    if str(db_path) != ":memory:":
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    db.row_factory = aiosqlite.Row
    await apply_migrations(db)
    logger.debug("Opened scan cache at %s", db_path)
    return ScanStore(db, device_names=device_names)
