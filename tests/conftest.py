"""Shared test fixtures for netpresence tests."""

from __future__ import annotations

import pathlib
from typing import Iterable

import pytest

from netpresence.scanner.parser import ParseContext

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

SELF_MAC = "00:00:00:00:00:00"

# 2024-03-10T12:00:00Z
SCAN_START = 1710072000


def nmap_host(
    mac: str | None = None,
    vendor: str | None = None,
    ip: str | None = None,
    hostnames: Iterable[str] = (),
    localhost: bool = False,
) -> str:
    """Render one nmap ``<host>`` element."""
    reason = "localhost-response" if localhost else "arp-response"
    parts = [f'<status state="up" reason="{reason}" reason_ttl="0"/>']
    if ip is not None:
        parts.append(f'<address addr="{ip}" addrtype="ipv4"/>')
    if mac is not None:
        vendor_attr = f' vendor="{vendor}"' if vendor is not None else ""
        parts.append(f'<address addr="{mac}" addrtype="mac"{vendor_attr}/>')
    names = "".join(f'<hostname name="{name}" type="PTR"/>' for name in hostnames)
    parts.append(f"<hostnames>{names}</hostnames>")
    parts.append('<times srtt="1000" rttvar="5000" to="100000"/>')
    return "<host>" + "".join(parts) + "</host>"


def nmap_document(start: int = SCAN_START, hosts: Iterable[str] = (), extra: str = "") -> str:
    """Render a complete nmap ``-oX`` document as written by ``nmap -sn``."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<!DOCTYPE nmaprun>\n"
        '<?xml-stylesheet href="file:///usr/bin/../share/nmap/nmap.xsl" type="text/xsl"?>\n'
        f'<nmaprun scanner="nmap" args="nmap -sn -oX - 192.168.1.0/24" start="{start}" '
        'startstr="" version="7.80" xmloutputversion="1.04">\n'
        '<verbose level="0"/>\n'
        '<debugging level="0"/>\n'
        + "\n".join(hosts)
        + extra
        + f'\n<runstats><finished time="{start + 3}" elapsed="3.02" exit="success"/>'
        '<hosts up="2" down="254" total="256"/></runstats>\n'
        "</nmaprun>\n"
    )


@pytest.fixture
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def parse_context() -> ParseContext:
    return ParseContext(self_mac_address=SELF_MAC)
