"""
Month-key helpers.

A month key is a ``YYYY-MM`` string. Snapshots are stored against the first
calendar day of the month it names.
"""

from __future__ import annotations

import re
from datetime import date, datetime

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


def month_key(d: date) -> str:
    """Return the ``YYYY-MM`` key for the month containing *d*."""
    return f"{d.year:04d}-{d.month:02d}"


def current_month_key(today: date | None = None) -> str:
    """Month key for *today* (defaults to the local date)."""
    return month_key(today or datetime.now().date())


def parse_month_key(key: str) -> tuple[int, int]:
    """Split a month key into ``(year, month)``. Raises ValueError if malformed."""
    match = _MONTH_KEY_RE.match(key or "")
    if not match:
        raise ValueError(f"Invalid month key: {key!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in key {key!r}")
    return year, month


def first_day(key: str) -> date:
    """First calendar day of the month named by *key*."""
    year, month = parse_month_key(key)
    return date(year, month, 1)


def shift_month_key(key: str, months: int) -> str:
    """Move *key* forward (positive) or backward (negative) by whole months."""
    year, month = parse_month_key(key)
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def months_between(start: date, end: date) -> int:
    """Whole calendar months from *start*'s month to *end*'s month (day ignored)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def trailing_month_keys(count: int, today: date | None = None) -> list[str]:
    """The last *count* month keys ending with the current month, oldest first."""
    current = current_month_key(today)
    return [shift_month_key(current, -offset) for offset in range(count - 1, -1, -1)]
