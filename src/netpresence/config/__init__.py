"""Configuration loader for netpresence.

Loads settings from a YAML file with built-in defaults. Supports environment
variable overrides using the NETPRESENCE_ prefix with double-underscore
nesting (e.g., NETPRESENCE_SOURCES__MAX_MISSING_DAYS=14).
"""

from __future__ import annotations

import os
import pathlib
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


DEFAULT_SELF_MAC = "00:00:00:00:00:00"


# ---------------------------------------------------------------------------
# Config sub-models
# ---------------------------------------------------------------------------

class StoreConfig(BaseModel):
    data_dir: str = "./data"
    db_name: str = "netpresence.db"

    @property
    def db_path(self) -> pathlib.Path:
        return pathlib.Path(self.data_dir) / self.db_name


class SourcesConfig(BaseModel):
    # Directory or URL prefix of the daily YYYY-MM-DD.xml logs
    log_files_path: str = "./logs/"
    # Stop scanning backwards after this many consecutive missing days
    max_missing_days: int = 7
    # Stop after this many days were fetched; None means no limit
    day_get_limit: int | None = None
    # Days this close to today are always refetched (the scanner may still append)
    recent_days: int = 3
    batch_size: int = 200
    static_log_files: list[str] = Field(default_factory=list)
    fetch_timeout: float = 30.0


class ChartConfig(BaseModel):
    # Must match the interval nmap is run at, e.g. 10 for "*/10 * * * *"
    log_interval_minutes: int = 10
    # Hide devices that are up less than this fraction of the reference uptime
    minimum_uptime: float = 0.02


class DevicesConfig(BaseModel):
    self_mac_address: str = DEFAULT_SELF_MAC
    device_names: dict[str, str] = Field(
        default_factory=lambda: {DEFAULT_SELF_MAC: "me"}
    )

    @field_validator("self_mac_address")
    @classmethod
    def _upper_self_mac(cls, value: str) -> str:
        return value.upper()

    @field_validator("device_names")
    @classmethod
    def _upper_name_keys(cls, value: dict[str, str]) -> dict[str, str]:
        return {mac.upper(): name for mac, name in value.items()}


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    charts: ChartConfig = Field(default_factory=ChartConfig)
    devices: DevicesConfig = Field(default_factory=DevicesConfig)


# ---------------------------------------------------------------------------
# Deep merge helper
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "NETPRESENCE_"


def _coerce_env_value(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("none", "null"):
        return None
    return value


def _collect_env_overrides() -> dict[str, Any]:
    """Collect NETPRESENCE_* env vars and build a nested dict.

    Double-underscore separates nesting levels.
    Example: NETPRESENCE_CHARTS__MINIMUM_UPTIME=0.1
    becomes  {"charts": {"minimum_uptime": 0.1}}
    """
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        parts = key[len(_ENV_PREFIX) :].lower().split("__")
        current = overrides
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = _coerce_env_value(value)
    return overrides


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_BUILTIN_DEFAULTS_PATH = pathlib.Path(__file__).resolve().parents[3] / "config" / "defaults.yaml"


def load_settings(
    config_path: pathlib.Path | None = None,
) -> Settings:
    """Load settings with layered precedence: defaults < file < env vars.

    Parameters
    ----------
    config_path:
        Path to a YAML config file. If ``None`` the bundled defaults file is
        used; if the file does not exist, model defaults are used.
    """
    base: dict[str, Any] = {}

    path = config_path if config_path is not None else _BUILTIN_DEFAULTS_PATH
    if path.exists():
        with open(path) as fh:
            file_data = yaml.safe_load(fh)
        if isinstance(file_data, dict):
            base = _deep_merge(base, file_data)

    env_overrides = _collect_env_overrides()
    if env_overrides:
        base = _deep_merge(base, env_overrides)

    settings = Settings(**base)
    # The reference device always gets a display name unless one was configured
    settings.devices.device_names.setdefault(settings.devices.self_mac_address, "me")
    return settings
