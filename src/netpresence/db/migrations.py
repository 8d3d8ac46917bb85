"""Schema version tracking and migration runner.

Checks the current schema version in the database and applies any pending
migrations in order. Version 0 means no schema exists yet.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite

from netpresence.db.schema import SCHEMA_V1_SQL, SCHEMA_VERSION

logger = logging.getLogger(__name__)


async def _get_current_version(db: aiosqlite.Connection) -> int:
    """Return the current schema version, or 0 if the table does not exist."""
    cursor = await db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    row = await cursor.fetchone()
    if row is None:
        return 0
    cursor = await db.execute("SELECT MAX(version) FROM schema_version")
    row = await cursor.fetchone()
    return row[0] if row and row[0] is not None else 0


async def _apply_v1(db: aiosqlite.Connection) -> None:
    """Apply schema version 1: create the cache tables and indexes."""
    await db.executescript(SCHEMA_V1_SQL)
    now = datetime.now(timezone.utc).isoformat()
    await db.execute(
        "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
        (1, now),
    )
    await db.commit()


_MIGRATIONS = {
    1: _apply_v1,
}


async def apply_migrations(db: aiosqlite.Connection) -> int:
    """Bring the database up to ``SCHEMA_VERSION``.

    Returns the schema version after migrating.
    """
    current = await _get_current_version(db)
    for version in range(current + 1, SCHEMA_VERSION + 1):
        logger.info("Applying schema migration v%d", version)
        await _MIGRATIONS[version](db)
    return SCHEMA_VERSION
