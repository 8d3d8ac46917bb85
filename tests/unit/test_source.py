"""Tests for the HTTP and filesystem log sources."""

from __future__ import annotations

import pathlib

import httpx
import pytest
from pytest_httpx import HTTPXMock

from netpresence.config import Settings, SourcesConfig
from netpresence.scanner.source import (
    FileLogSource,
    HttpLogSource,
    SourceFetchError,
    create_log_source,
)

LOG_URL = "http://pi.local/nmap/2024-03-10.xml"


@pytest.fixture
def http_source() -> HttpLogSource:
    return HttpLogSource(timeout=5.0)


# ---------------------------------------------------------------------------
# HttpLogSource
# ---------------------------------------------------------------------------


class TestHttpLogSource:
    async def test_returns_body(self, http_source: HttpLogSource, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=LOG_URL, text="<?xml version=\"1.0\"?><nmaprun/>")
        assert await http_source.fetch(LOG_URL) == "<?xml version=\"1.0\"?><nmaprun/>"

    async def test_not_found_returns_none(
        self, http_source: HttpLogSource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=LOG_URL, status_code=404)
        assert await http_source.fetch(LOG_URL) is None

    async def test_server_error_raises(
        self, http_source: HttpLogSource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=LOG_URL, status_code=500)
        with pytest.raises(SourceFetchError) as exc_info:
            await http_source.fetch(LOG_URL)
        assert exc_info.value.status == 500
        assert exc_info.value.location == LOG_URL
        assert "500" in str(exc_info.value)

    async def test_forbidden_is_not_absence(
        self, http_source: HttpLogSource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=LOG_URL, status_code=403)
        with pytest.raises(SourceFetchError):
            await http_source.fetch(LOG_URL)

    async def test_unreachable_raises(
        self, http_source: HttpLogSource, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=LOG_URL)
        with pytest.raises(SourceFetchError) as exc_info:
            await http_source.fetch(LOG_URL)
        assert exc_info.value.status is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    # -- key resolution against the log location --

    async def test_relative_static_file_resolves_against_base(
        self, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url="http://pi.local/nmap/archive/2023.xml", text="archived")
        source = HttpLogSource(base_url="http://pi.local/nmap/")

        assert await source.fetch("archive/2023.xml") == "archived"

    async def test_root_relative_key(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url="http://pi.local/static/old.xml", text="old")
        source = HttpLogSource(base_url="http://pi.local/nmap/")

        assert await source.fetch("/static/old.xml") == "old"

    async def test_absolute_key_used_as_is(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url="https://mirror.lan/2024-03-10.xml", text="mirrored")
        source = HttpLogSource(base_url="http://pi.local/nmap/")

        assert await source.fetch("https://mirror.lan/2024-03-10.xml") == "mirrored"

    async def test_relative_key_without_base_raises(self) -> None:
        with pytest.raises(SourceFetchError):
            await HttpLogSource().fetch("archive/2023.xml")


# ---------------------------------------------------------------------------
# FileLogSource
# ---------------------------------------------------------------------------


class TestFileLogSource:
    async def test_reads_file(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "2024-03-10.xml").write_text("scan data")
        source = FileLogSource(tmp_path)
        assert await source.fetch("2024-03-10.xml") == "scan data"

    async def test_missing_file_returns_none(self, tmp_path: pathlib.Path) -> None:
        assert await FileLogSource(tmp_path).fetch("2024-03-11.xml") is None

    async def test_unreadable_path_raises(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "logs").mkdir()
        with pytest.raises(SourceFetchError):
            await FileLogSource(tmp_path).fetch("logs")

    async def test_absolute_location(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "static.xml"
        path.write_text("static")
        assert await FileLogSource().fetch(str(path)) == "static"


class TestCreateLogSource:
    @pytest.mark.parametrize("prefix", ["http://pi.local/", "https://pi.local/logs/"])
    def test_url_prefix_uses_http(self, prefix: str) -> None:
        settings = Settings(sources=SourcesConfig(log_files_path=prefix))
        source = create_log_source(settings)
        assert isinstance(source, HttpLogSource)
        assert source.url_for("archive/2023.xml") == httpx.URL(prefix + "archive/2023.xml")

    def test_path_uses_filesystem(self) -> None:
        settings = Settings(sources=SourcesConfig(log_files_path="/var/log/nmap/"))
        assert isinstance(create_log_source(settings), FileLogSource)
