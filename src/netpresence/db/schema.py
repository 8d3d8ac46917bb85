"""SQLite schema definitions for netpresence.

Three keyed tables make up the scan cache: one row per scan timestamp, one
row per distinct (mac, kind, value) fact, and one marker row per log file
that has already been fetched.
"""

from __future__ import annotations

# Current schema version -- increment when adding migrations
SCHEMA_VERSION = 1


# ---------------------------------------------------------------------------
# SQL statements for schema version 1
# ---------------------------------------------------------------------------

SCHEMA_V1_SQL = """
-- One row per scan; devices is a JSON array of MAC addresses
CREATE TABLE IF NOT EXISTS presence_snapshots (
    time INTEGER PRIMARY KEY,
    devices TEXT NOT NULL
);

-- Everything ever observed about a device; rows are never deleted by ingestion
CREATE TABLE IF NOT EXISTS device_facts (
    mac TEXT NOT NULL,
    kind TEXT NOT NULL CHECK(kind IN ('ip', 'hostname', 'vendor')),
    value TEXT NOT NULL,
    PRIMARY KEY (mac, kind, value)
);
CREATE INDEX IF NOT EXISTS idx_facts_mac ON device_facts(mac);
CREATE INDEX IF NOT EXISTS idx_facts_value ON device_facts(value);

-- Log files already fetched (or known to be absent)
CREATE TABLE IF NOT EXISTS ingestion_markers (
    source_key TEXT PRIMARY KEY,
    outcome TEXT NOT NULL CHECK(outcome IN ('404', 'success')),
    recorded_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);
"""
