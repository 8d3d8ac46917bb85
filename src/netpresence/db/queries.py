"""Typed async query helpers for the scan cache tables.

Every function takes an ``aiosqlite.Connection`` as its first argument and
returns plain dicts or scalar values. Writes do not commit: callers group
them with ``ScanStore.transaction()`` so that a batch lands all-or-nothing.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

import aiosqlite


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _fetchone(
    db: aiosqlite.Connection, sql: str, params: tuple = ()
) -> dict[str, Any] | None:
    cursor = await db.execute(sql, params)
    row = await cursor.fetchone()
    if row is None:
        return None
    columns = [desc[0] for desc in cursor.description]
    return dict(zip(columns, row))


async def _fetchall(
    db: aiosqlite.Connection, sql: str, params: tuple = ()
) -> list[dict[str, Any]]:
    cursor = await db.execute(sql, params)
    rows = await cursor.fetchall()
    if not rows:
        return []
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row)) for row in rows]


async def _count(db: aiosqlite.Connection, table: str) -> int:
    cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
    row = await cursor.fetchone()
    return row[0] if row else 0


# ---------------------------------------------------------------------------
# Ingestion marker queries
# ---------------------------------------------------------------------------

async def get_marker(
    db: aiosqlite.Connection, source_key: str
) -> dict[str, Any] | None:
    """Get the fetch marker for a log source, if it was fetched before."""
    return await _fetchone(
        db,
        "SELECT source_key, outcome, recorded_at FROM ingestion_markers WHERE source_key = ?",
        (source_key,),
    )


async def put_marker(
    db: aiosqlite.Connection, *, source_key: str, outcome: str
) -> None:
    """Insert or replace the fetch marker for a log source (upsert)."""
    await db.execute(
        """INSERT INTO ingestion_markers (source_key, outcome, recorded_at)
           VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
           ON CONFLICT(source_key)
           DO UPDATE SET outcome = excluded.outcome,
                         recorded_at = excluded.recorded_at""",
        (source_key, outcome),
    )


# ---------------------------------------------------------------------------
# Presence snapshot queries
# ---------------------------------------------------------------------------

async def put_snapshot(
    db: aiosqlite.Connection, *, time: int, devices: Iterable[str]
) -> None:
    """Insert or update the snapshot for a scan timestamp (upsert by time)."""
    await db.execute(
        """INSERT INTO presence_snapshots (time, devices) VALUES (?, ?)
           ON CONFLICT(time) DO UPDATE SET devices = excluded.devices""",
        (time, json.dumps(sorted(devices))),
    )


async def list_snapshots(db: aiosqlite.Connection) -> list[dict[str, Any]]:
    """List all snapshots ordered by time."""
    rows = await _fetchall(
        db, "SELECT time, devices FROM presence_snapshots ORDER BY time ASC"
    )
    for row in rows:
        row["devices"] = json.loads(row["devices"])
    return rows


async def count_snapshots(db: aiosqlite.Connection) -> int:
    return await _count(db, "presence_snapshots")


# ---------------------------------------------------------------------------
# Device fact queries
# ---------------------------------------------------------------------------

async def bulk_put_facts(
    db: aiosqlite.Connection, facts: Iterable[tuple[str, str, str]]
) -> None:
    """Insert (mac, kind, value) facts, ignoring ones already known."""
    await db.executemany(
        "INSERT OR IGNORE INTO device_facts (mac, kind, value) VALUES (?, ?, ?)",
        list(facts),
    )


async def list_facts_for_mac(
    db: aiosqlite.Connection, mac: str
) -> list[dict[str, Any]]:
    """All facts recorded for one device, in insertion order."""
    return await _fetchall(
        db,
        "SELECT mac, kind, value FROM device_facts WHERE mac = ? ORDER BY rowid",
        (mac,),
    )


async def count_facts(db: aiosqlite.Connection) -> int:
    return await _count(db, "device_facts")
