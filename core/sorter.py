"""Resolve timestamps for a collected batch, sort it and verify the order."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from core.errors import SortInvariantViolation, TimeLabelError
from core.events import NULL_SINK, EventSink
from core.models import Batch, Item, ParsedItem
from core.time_parser import parse_relative_time

log = logging.getLogger(__name__)

TIE_BREAKS = ("title", "arrival")


def parse_items(items: Sequence[Item], now: datetime) -> list[ParsedItem]:
    """Resolve every label against ``now``; the first failure names its item."""
    parsed: list[ParsedItem] = []
    for position, item in enumerate(items):
        try:
            absolute_time = parse_relative_time(item.relative_time_label, now)
        except TimeLabelError as exc:
            exc.annotate(item.title)
            log.error("Error parsing time string %r: %s", item.relative_time_label, exc)
            raise
        parsed.append(
            ParsedItem(
                id=item.id,
                title=item.title,
                absolute_time=absolute_time,
                position=position,
            )
        )
    return parsed


def sort_items(items: Sequence[ParsedItem], tie_break: str = "title") -> list[ParsedItem]:
    """Newest first. Equal timestamps are ordered by title or by arrival."""
    _check_tie_break(tie_break)
    if tie_break == "title":
        ordered = sorted(items, key=lambda p: p.title)
    else:
        ordered = sorted(items, key=lambda p: p.position)
    # Stable, so the secondary order above survives among equal timestamps.
    ordered.sort(key=lambda p: p.absolute_time, reverse=True)
    return ordered


def validate_order(items: Sequence[ParsedItem], tie_break: str = "title") -> None:
    """Raise ``SortInvariantViolation`` at the first out-of-order pair."""
    _check_tie_break(tie_break)
    for index in range(1, len(items)):
        previous, current = items[index - 1], items[index]
        if current.absolute_time < previous.absolute_time:
            continue
        if current.absolute_time == previous.absolute_time:
            if tie_break == "title" and previous.title <= current.title:
                continue
            if tie_break == "arrival" and previous.position <= current.position:
                continue
        log.error(
            "Items not sorted correctly at index %d: %r (%s) after %r (%s)",
            index,
            current.title,
            current.absolute_time.isoformat(),
            previous.title,
            previous.absolute_time.isoformat(),
        )
        raise SortInvariantViolation(
            index,
            previous.title,
            previous.absolute_time,
            current.title,
            current.absolute_time,
        )


def finalize(
    items: Sequence[Item],
    now: datetime,
    tie_break: str = "title",
    sink: EventSink | None = None,
) -> Batch:
    """Parse, sort and validate ``items`` into a ``Batch``."""
    _check_tie_break(tie_break)
    sink = sink or NULL_SINK

    parsed = parse_items(items, now)
    log.info("Sorting %d items by date...", len(parsed))
    ordered = sort_items(parsed, tie_break)
    validate_order(ordered, tie_break)

    batch = Batch(items=tuple(ordered), tie_break=tie_break)
    if batch.items:
        log.info(
            "Validation passed: items are correctly sorted from newest to oldest "
            "(newest %r, oldest %r, %d total)",
            batch.newest.title,
            batch.oldest.title,
            len(batch),
        )
        sink.gauge("batch.time_span_hours", batch.time_span.total_seconds() / 3600)
    return batch


def _check_tie_break(tie_break: str) -> None:
    if tie_break not in TIE_BREAKS:
        raise ValueError(f"Unknown tie-break {tie_break!r}; expected one of {TIE_BREAKS}")
