"""Per-device summaries: display names, up counts and the totals table."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping

from netpresence.config import Settings
from netpresence.db.store import ScanStore
from netpresence.models import DeviceInfo, DeviceSummary, PresenceSnapshot


async def collect_device_infos(
    store: ScanStore, snapshots: Iterable[PresenceSnapshot]
) -> dict[str, DeviceInfo]:
    """Look up every device seen in *snapshots* and count its scans."""
    infos: dict[str, DeviceInfo] = {}
    for snapshot in snapshots:
        for mac in snapshot.devices:
            info = infos.get(mac)
            if info is None:
                info = infos[mac] = await store.get_device_info(mac)
            info.up_count += 1
    return infos


class DeviceNamer:
    """Chooses a display name for each device.

    In order: the configured name, the device's hostname shared by the most
    devices, its IP shared by the most devices, and finally the MAC itself.
    Ties go to the value recorded first.
    """

    def __init__(self, infos: Mapping[str, DeviceInfo]) -> None:
        self._hostname_counts = Counter(
            hostname for info in infos.values() for hostname in info.hostnames
        )
        self._ip_counts = Counter(ip for info in infos.values() for ip in info.ips)

    def __call__(self, info: DeviceInfo) -> str:
        if info.display_name:
            return info.display_name
        if info.hostnames:
            return max(info.hostnames, key=lambda h: self._hostname_counts[h])
        if info.ips:
            return max(info.ips, key=lambda ip: self._ip_counts[ip])
        return info.mac


def summarize_devices(
    infos: Mapping[str, DeviceInfo], settings: Settings
) -> list[DeviceSummary]:
    """Totals table rows, most frequently seen device first."""
    namer = DeviceNamer(infos)
    reference = infos.get(settings.devices.self_mac_address)
    reference_count = reference.up_count if reference is not None else 0
    interval = settings.charts.log_interval_minutes

    rows = [
        DeviceSummary(
            mac=mac,
            name=namer(info),
            vendors=info.vendors,
            hostnames=info.hostnames,
            ips=info.ips,
            up_count=info.up_count,
            uptime_hours=info.up_count * interval / 60,
            relative_uptime=info.up_count / reference_count if reference_count else 0.0,
        )
        for mac, info in infos.items()
    ]
    rows.sort(key=lambda row: (-row.up_count, row.mac))
    return rows
