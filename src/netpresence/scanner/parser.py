"""nmap XML scan document parser.

Turns one ``<nmaprun>`` document into a presence snapshot (the set of MAC
addresses seen online at the scan start time) plus the facts learned about
each device (IPv4 addresses, hostnames, vendor strings).

A single bad document never raises: malformed XML and unexpected elements
are logged and the document is dropped, so that one corrupt scan does not
abort the ingestion of the other scans in the same log file.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from xml.etree import ElementTree

from netpresence.models import DeviceFact, FactKind, ParseResult, PresenceSnapshot

logger = logging.getLogger(__name__)

# nmap writes one document per run; daily logs are these documents concatenated
DOCUMENT_MARKER = "<?xml version"

# Scans started before this were taken with an unset real-time clock
CLOCK_UNSET_BEFORE_MS = int(datetime(2000, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)

LOCALHOST_REASON = "localhost-response"

# Top-level <nmaprun> children that carry no host data
_METADATA_TAGS = frozenset({
    "scaninfo",
    "verbose",
    "debugging",
    "target",
    "taskbegin",
    "taskprogress",
    "taskend",
    "hosthint",
    "prescript",
    "postscript",
    "output",
    "runstats",
})


class ScanDocumentError(ValueError):
    """The document does not look like nmap output we understand."""


@dataclass(frozen=True)
class ParseContext:
    """Per-run parser settings.

    Parameters
    ----------
    self_mac_address:
        Device id recorded for the scanning host itself, which nmap reports
        with a ``localhost-response`` status instead of a MAC address.
    """

    self_mac_address: str


@dataclass
class _HostRecord:
    mac: str | None = None
    is_self: bool = False
    vendor: str | None = None
    ips: list[str] = field(default_factory=list)
    hostnames: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Host element handlers
# ---------------------------------------------------------------------------

def _require(element: ElementTree.Element, attribute: str) -> str:
    value = element.get(attribute)
    if value is None:
        raise ScanDocumentError(f"<{element.tag}> without {attribute!r} attribute")
    return value


def _read_status(element: ElementTree.Element, record: _HostRecord) -> None:
    if element.get("reason") == LOCALHOST_REASON:
        record.is_self = True


def _read_address(element: ElementTree.Element, record: _HostRecord) -> None:
    addrtype = element.get("addrtype")
    if addrtype == "mac":
        record.mac = _require(element, "addr").upper()
        record.vendor = element.get("vendor", "")
    elif addrtype == "ipv4":
        record.ips.append(_require(element, "addr"))


def _read_hostnames(element: ElementTree.Element, record: _HostRecord) -> None:
    for child in element:
        if child.tag == "hostname":
            record.hostnames.append(_require(child, "name"))


_HOST_HANDLERS: dict[str, Callable[[ElementTree.Element, _HostRecord], None]] = {
    "status": _read_status,
    "address": _read_address,
    "hostnames": _read_hostnames,
}


def parse_host(
    context: ParseContext, element: ElementTree.Element
) -> tuple[str, list[DeviceFact]] | None:
    """Resolve a ``<host>`` element to its device id and facts.

    Returns None when the host has neither a MAC address nor a localhost
    status, since there is no stable identity to record it under.
    """
    record = _HostRecord()
    for child in element:
        handler = _HOST_HANDLERS.get(child.tag)
        if handler is not None:
            handler(child, record)

    mac = context.self_mac_address if record.is_self else record.mac
    if not mac:
        return None

    facts: list[DeviceFact] = []
    if record.vendor is not None:
        facts.append(DeviceFact(mac=mac, kind=FactKind.VENDOR, value=record.vendor))
    facts.extend(DeviceFact(mac=mac, kind=FactKind.IP, value=ip) for ip in record.ips)
    facts.extend(
        DeviceFact(mac=mac, kind=FactKind.HOSTNAME, value=hostname)
        for hostname in record.hostnames
    )
    return mac, facts


# ---------------------------------------------------------------------------
# Document parsing
# ---------------------------------------------------------------------------

def _scan_start_ms(root: ElementTree.Element) -> int | None:
    """Return the ``start`` attribute of the root element in epoch ms."""
    try:
        return int(root.get("start", "")) * 1000
    except ValueError:
        return None


def parse_scan(context: ParseContext, filename: str, xml_text: str) -> ParseResult | None:
    """Parse one nmap XML document.

    Returns None for documents that must not be recorded: scans from before
    the clock was set (silently), malformed XML and unknown top-level
    elements (with a log message).
    """
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as exc:
        logger.warning("Parsing error in %s: %s", filename, exc)
        return None

    start_ms = _scan_start_ms(root)
    if start_ms is None or start_ms < CLOCK_UNSET_BEFORE_MS:
        logger.debug("Ignoring scan in %s with unset clock (start=%s)", filename, root.get("start"))
        return None

    devices: set[str] = set()
    new_infos: list[DeviceFact] = []
    try:
        for child in root:
            if child.tag in _METADATA_TAGS:
                continue
            if child.tag != "host":
                raise ScanDocumentError(f"unexpected element <{child.tag}>")
            resolved = parse_host(context, child)
            if resolved is None:
                logger.warning(
                    "No MAC address found for host in %s scan at %d", filename, start_ms
                )
                continue
            mac, facts = resolved
            devices.add(mac)
            new_infos.extend(facts)
    except ScanDocumentError as exc:
        logger.error("Rejected scan document in %s: %s", filename, exc)
        return None

    return ParseResult(
        online=PresenceSnapshot(time=start_ms, devices=frozenset(devices)),
        new_infos=new_infos,
    )


def split_documents(blob: str) -> list[str]:
    """Split a concatenated log file into individual XML documents.

    Whitespace-only fragments (e.g. the empty text before the first marker)
    are discarded.
    """
    return [
        DOCUMENT_MARKER + fragment
        for fragment in blob.split(DOCUMENT_MARKER)
        if fragment.strip()
    ]
