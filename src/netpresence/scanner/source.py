"""Log file sources: where the raw nmap logs are fetched from.

A source returns the text of a log file, ``None`` when the file does not
exist (a permanent, cacheable answer), and raises ``SourceFetchError`` for
everything else (transient, the caller may retry later).
"""
from __future__ import annotations

import asyncio
import logging
import pathlib
from typing import Protocol

import httpx

from netpresence.config import Settings

logger = logging.getLogger(__name__)


class SourceFetchError(Exception):
    """A log file could not be fetched for a reason other than absence."""

    def __init__(self, location: str, reason: str, status: int | None = None) -> None:
        self.location = location
        self.reason = reason
        self.status = status
        detail = f"{status}: {reason}" if status is not None else reason
        super().__init__(f"Request Error for {location}: {detail}")


class LogSource(Protocol):
    async def fetch(self, location: str) -> str | None:
        ...


class HttpLogSource:
    """Fetch logs over HTTP(S).

    Parameters
    ----------
    base_url:
        Location relative keys (e.g. static archive files) resolve against,
        normally ``sources.log_files_path``. Absolute URLs are used as is.
    timeout:
        Seconds to wait for each request.
    """

    def __init__(self, base_url: str = "", timeout: float = 30.0) -> None:
        self._base_url = httpx.URL(base_url)
        self._timeout = timeout

    def url_for(self, location: str) -> httpx.URL:
        return self._base_url.join(location)

    async def fetch(self, location: str) -> str | None:
        try:
            url = self.url_for(location)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SourceFetchError(location, str(exc) or type(exc).__name__) from exc

        if resp.status_code == 404:
            logger.debug("Log %s not found", url)
            return None
        if resp.status_code >= 300:
            raise SourceFetchError(location, resp.reason_phrase, status=resp.status_code)
        return resp.text


class FileLogSource:
    """Read logs from the local filesystem, relative to *root*."""

    def __init__(self, root: pathlib.Path | None = None) -> None:
        self._root = root or pathlib.Path(".")

    async def fetch(self, location: str) -> str | None:
        path = self._root / location
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except FileNotFoundError:
            logger.debug("Log %s not found", path)
            return None
        except OSError as exc:
            raise SourceFetchError(str(path), exc.strerror or str(exc)) from exc


def create_log_source(settings: Settings) -> LogSource:
    """Pick the source implementation matching ``sources.log_files_path``."""
    path = settings.sources.log_files_path
    if path.startswith(("http://", "https://")):
        return HttpLogSource(base_url=path, timeout=settings.sources.fetch_timeout)
    return FileLogSource()
