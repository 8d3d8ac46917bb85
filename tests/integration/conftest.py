# tests/integration/conftest.py
from __future__ import annotations

from unittest.mock import AsyncMock

import aiosqlite
import pytest
import pytest_asyncio

from netpresence.db.migrations import apply_migrations
from netpresence.db.store import ScanStore
from netpresence.ingest.controller import IngestionController
from netpresence.scanner.parser import ParseContext
from tests.conftest import SELF_MAC

LOG_PREFIX = "http://pi.local/nmap/"


@pytest_asyncio.fixture
async def db():
    """Create an in-memory SQLite database with full schema."""
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await apply_migrations(conn)
    yield conn
    await conn.close()


@pytest.fixture
def store(db):
    """A ScanStore over the test database, with the reference device named."""
    return ScanStore(db, device_names={SELF_MAC: "me"})


@pytest.fixture
def source():
    """A log source that finds nothing unless a test says otherwise."""
    fake = AsyncMock()
    fake.fetch.return_value = None
    return fake


@pytest.fixture
def controller(store, source, parse_context: ParseContext):
    return IngestionController(
        store, source, parse_context, log_files_path=LOG_PREFIX, batch_size=200
    )


async def count_rows(db, table: str) -> int:
    cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
    row = await cursor.fetchone()
    return row[0]
