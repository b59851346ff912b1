"""Resolve relative-time labels ("3 hours ago", "just now") to datetimes."""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from core.errors import ParseError, UnsupportedUnitError

_RELATIVE_RE = re.compile(r"(\d+)\s+([a-z]+)\s+ago", re.IGNORECASE)

# Months and years are fixed 30 and 365 day approximations.
UNIT_DURATIONS: dict[str, timedelta] = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def parse_relative_time(label: str | None, now: datetime) -> datetime:
    """Return the point in time ``label`` refers to, relative to ``now``.

    Raises ``ParseError`` when the label matches no known pattern and
    ``UnsupportedUnitError`` when the unit word is not recognised.
    """
    if not label:
        raise ParseError(label)
    if "just now" in label.lower():
        return now

    match = _RELATIVE_RE.search(label)
    if match is None:
        raise ParseError(label)

    value = int(match.group(1))
    unit = match.group(2).lower()
    if unit.endswith("s"):
        unit = unit[:-1]

    duration = UNIT_DURATIONS.get(unit)
    if duration is None:
        raise UnsupportedUnitError(label, unit)

    try:
        return now - value * duration
    except OverflowError as exc:
        raise ParseError(label) from exc
