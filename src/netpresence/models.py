"""Pydantic domain models for netpresence.

These models define the records held in the local store (presence
snapshots, device facts, ingestion markers) and the chart-ready structures
derived from them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FactKind(str, Enum):
    IP = "ip"
    HOSTNAME = "hostname"
    VENDOR = "vendor"


class FetchOutcome(str, Enum):
    NOT_FOUND = "404"
    SUCCESS = "success"


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class PresenceSnapshot(BaseModel):
    """Devices seen online by one scan, keyed by the scan start time (epoch ms)."""

    model_config = ConfigDict(frozen=True)

    time: int
    devices: frozenset[str] = frozenset()


class DeviceFact(BaseModel):
    model_config = ConfigDict(frozen=True)

    mac: str
    kind: FactKind
    value: str


class IngestionMarker(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source_key: str
    outcome: FetchOutcome


class ParseResult(BaseModel):
    online: PresenceSnapshot
    new_infos: list[DeviceFact] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------

class DeviceInfo(BaseModel):
    """Everything known about one device, collected from its facts."""

    mac: str
    display_name: str | None = None
    vendors: list[str] = Field(default_factory=list)
    hostnames: list[str] = Field(default_factory=list)
    ips: list[str] = Field(default_factory=list)
    up_count: int = 0


class DeviceSeries(BaseModel):
    """One chart line: a device's uptime percentage per bucket.

    ``None`` values mark a gap in the recorded data.
    """

    mac: str
    name: str
    vendors: list[str] = Field(default_factory=list)
    hostnames: list[str] = Field(default_factory=list)
    ips: list[str] = Field(default_factory=list)
    points: list[tuple[int, int | None]] = Field(default_factory=list)


class DeviceSummary(BaseModel):
    mac: str
    name: str
    vendors: list[str] = Field(default_factory=list)
    hostnames: list[str] = Field(default_factory=list)
    ips: list[str] = Field(default_factory=list)
    up_count: int
    uptime_hours: float
    relative_uptime: float
