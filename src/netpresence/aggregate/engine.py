"""Uptime aggregation: from raw snapshots to chart series.

Pipeline:
  1. ``aggregate``: round each scan time to its bucket and count, per
     bucket, how often each device was online.
  2. ``level_invert``: pivot bucket -> device -> count into
     device -> bucket -> count over every bucket, filling in zeros.
  3. Normalize each device against the reference device (the scanning
     host, online in every scan) to get an uptime percentage per bucket.
  4. Drop devices seen only incidentally and insert null points where the
     recorded data has holes, so charts break the line instead of
     interpolating across an outage.

Everything here is pure and synchronous.
"""
from __future__ import annotations

import logging
import math
from operator import itemgetter
from typing import Callable, Iterable, Iterator, Mapping, TypeVar

from netpresence.aggregate.devices import DeviceNamer
from netpresence.aggregate.rounding import Rounder, to_datetime, to_epoch_ms
from netpresence.config import Settings
from netpresence.models import DeviceInfo, DeviceSeries, PresenceSnapshot

logger = logging.getLogger(__name__)

Point = tuple[int, int | None]


def aggregate(
    snapshots: Iterable[PresenceSnapshot], rounder: Rounder
) -> dict[int, dict[str, int]]:
    """Count device presence per bucket.

    Returns bucket time (epoch ms) -> device -> number of scans in that
    bucket the device was seen in, with buckets in ascending order.
    Snapshots the rounder maps to ``None`` are left out.
    """
    rounded: list[tuple[int, frozenset[str]]] = []
    for snapshot in snapshots:
        if not snapshot.devices:
            continue
        bucket = rounder(to_datetime(snapshot.time))
        if bucket is None:
            continue
        rounded.append((to_epoch_ms(bucket), snapshot.devices))
    rounded.sort(key=itemgetter(0))

    buckets: dict[int, dict[str, int]] = {}
    for time, devices in rounded:
        counts = buckets.setdefault(time, {})
        for mac in sorted(devices):
            counts[mac] = counts.get(mac, 0) + 1
    return buckets


A = TypeVar("A")
B = TypeVar("B")
C = TypeVar("C")
D = TypeVar("D")


def level_invert(mapping: Mapping[A, Mapping[B, C]], default: D) -> dict[B, dict[A, C | D]]:
    """Swap the two key levels of a nested mapping.

    Every inner key gets an entry for every outer key, using *default*
    where the original mapping had none.
    """
    inner_keys = dict.fromkeys(key for inner in mapping.values() for key in inner)
    return {
        b: {a: inner.get(b, default) for a, inner in mapping.items()}
        for b in inner_keys
    }


T = TypeVar("T")
U = TypeVar("U")

_NOTHING = object()


def intersplice(
    items: Iterable[T], between: Callable[[T, T], Iterable[U]]
) -> Iterator[T | U]:
    """Yield *items*, with ``between(left, right)`` spliced in between each pair.

    ``between`` is called once per adjacent pair, in order.
    """
    last: object = _NOTHING
    for item in items:
        if last is not _NOTHING:
            yield from between(last, item)  # type: ignore[arg-type]
        last = item
        yield item


def uptime_part(count: int, reference: int) -> int:
    """*count* as a percentage of *reference*, rounded half up, at most 100.

    A bucket in which the reference device was never seen scores 0.
    """
    if not reference:
        return 0
    return min(100, math.floor(100 * count / reference + 0.5))


def insert_gaps(points: Iterable[Point], log_interval_ms: int) -> list[Point]:
    """Insert ``None`` points where consecutive points are unusually far apart.

    A distance of at least twice the smallest distance seen *so far* counts
    as a hole; it gets a null point one log interval after its left end and
    one before its right end.
    """
    min_distance = math.inf

    def between(left: Point, right: Point) -> list[Point]:
        nonlocal min_distance
        distance = right[0] - left[0]
        if distance < min_distance:
            min_distance = distance
        if distance >= min_distance * 2:
            return [(left[0] + log_interval_ms, None), (right[0] - log_interval_ms, None)]
        return []

    return list(intersplice(points, between))


def build_series(
    snapshots: Iterable[PresenceSnapshot],
    rounder: Rounder,
    device_infos: Mapping[str, DeviceInfo],
    settings: Settings,
) -> list[DeviceSeries]:
    """Chart series for every device worth showing, sorted by name."""
    per_device = level_invert(aggregate(snapshots, rounder), 0)

    self_mac = settings.devices.self_mac_address
    reference = per_device.pop(self_mac, {})
    total_reference = sum(reference.values())
    if total_reference == 0:
        logger.warning(
            "No scans recorded for reference device %s, showing raw counts", self_mac
        )

    threshold = total_reference * settings.charts.minimum_uptime
    log_interval_ms = settings.charts.log_interval_minutes * 60 * 1000
    namer = DeviceNamer(device_infos)

    series: list[DeviceSeries] = []
    for mac, counts in per_device.items():
        if sum(counts.values()) < threshold:
            continue
        info = device_infos.get(mac) or DeviceInfo(mac=mac)
        if total_reference:
            points = [
                (time, uptime_part(count, reference[time]))
                for time, count in counts.items()
            ]
        else:
            points = list(counts.items())
        series.append(
            DeviceSeries(
                mac=mac,
                name=namer(info),
                vendors=info.vendors,
                hostnames=info.hostnames,
                ips=info.ips,
                points=insert_gaps(points, log_interval_ms),
            )
        )

    series.sort(key=lambda s: (s.name, s.mac))
    return series
