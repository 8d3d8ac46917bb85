"""Time rounding functions used to bucket scans.

A rounder maps a scan's local wall-clock time to the start of its bucket,
or to ``None`` to leave the scan out of the chart. Offsetters have the same
shape and are applied after rounding: window filters drop old buckets and
overlay presets fold every week (or day) onto one synthetic axis.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

Rounder = Callable[[datetime], datetime | None]


def to_datetime(epoch_ms: int) -> datetime:
    """Epoch milliseconds to naive local time."""
    return datetime.fromtimestamp(epoch_ms / 1000)


def to_epoch_ms(value: datetime) -> int:
    return round(value.timestamp() * 1000)


def round_date(value: datetime, weekday: int, hours: int, minutes: int = 60) -> datetime:
    """Round *value* down to a multiple of *weekday* days, *hours* and *minutes*.

    Days are counted from Sunday, so ``weekday=7`` rounds to the start of
    the week beginning on Sunday and ``weekday=1`` leaves the day alone.
    """
    days_since_sunday = value.isoweekday() % 7
    value = value - timedelta(days=days_since_sunday % weekday)
    return value.replace(
        hour=value.hour - value.hour % hours,
        minute=value.minute - value.minute % minutes,
        second=0,
        microsecond=0,
    )


GRANULARITIES: dict[str, Rounder] = {
    "Weekly": lambda d: round_date(d, 7, 24),
    "Daily": lambda d: round_date(d, 1, 24),
    "3 hourly": lambda d: round_date(d, 1, 3),
    "hourly": lambda d: round_date(d, 1, 1),
    "20 minutes": lambda d: round_date(d, 1, 1, 20),
}


# ---------------------------------------------------------------------------
# Offsetters
# ---------------------------------------------------------------------------

def within_last(days: float, now: datetime | None = None) -> Rounder:
    """Keep only buckets less than *days* days before *now*."""
    window = timedelta(days=days)

    def offsetter(value: datetime) -> datetime | None:
        reference = now if now is not None else datetime.now()
        return value if reference - value < window else None

    return offsetter


def between(start: datetime | None, end: datetime | None) -> Rounder:
    """Keep only buckets inside [start, end]; either bound may be open."""

    def offsetter(value: datetime) -> datetime | None:
        if start is not None and value < start:
            return None
        if end is not None and value > end:
            return None
        return value

    return offsetter


def weekly_overlay(value: datetime) -> datetime:
    """Fold onto Monday 1970-01-05 .. Sunday 1970-01-11, keeping the weekday."""
    return value.replace(year=1970, month=1, day=5 + value.weekday())


def daily_overlay(value: datetime) -> datetime:
    """Fold onto 1970-01-01, keeping the time of day."""
    return value.replace(year=1970, month=1, day=1)


PRESETS: dict[str, Rounder] = {
    "weekly": weekly_overlay,
    "daily": daily_overlay,
}


def compose(rounder: Rounder, *offsetters: Rounder) -> Rounder:
    """Round first, then apply each offsetter; ``None`` short-circuits."""

    def composed(value: datetime) -> datetime | None:
        result = rounder(value)
        for offsetter in offsetters:
            if result is None:
                return None
            result = offsetter(result)
        return result

    return composed
