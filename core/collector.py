"""Paginate a listing until a fixed number of unique items is collected."""

from __future__ import annotations

import logging

from core.errors import IncompleteCollectionError, PaginationError
from core.events import NULL_SINK, EventSink
from core.models import CollectionResult, Item
from scrapers.base import PageFetcher

log = logging.getLogger(__name__)


async def collect(
    fetcher: PageFetcher,
    target_count: int,
    max_iterations: int,
    sink: EventSink | None = None,
) -> CollectionResult:
    """Read pages from ``fetcher`` until ``target_count`` unique items are held.

    Items are de-duplicated by id; the first sighting wins and keeps its
    position. At most ``max_iterations`` pages are read. Raises
    ``IncompleteCollectionError`` when pagination ends short of the target.
    """
    if target_count < 1:
        raise ValueError("target_count must be positive")
    if max_iterations < 1:
        raise ValueError("max_iterations must be positive")
    sink = sink or NULL_SINK

    result = CollectionResult(items=[])
    seen_ids: set[str] = set()

    while result.iterations < max_iterations:
        result.iterations += 1
        result.pages_visited += 1
        log.info(
            "Starting iteration %d, items so far: %d",
            result.iterations,
            len(result.items),
        )

        page_items = await fetcher.current_items()
        result.items_seen += len(page_items)

        new_items: list[Item] = []
        for item in page_items:
            if item.id in seen_ids:
                continue
            seen_ids.add(item.id)
            new_items.append(item)
        duplicates = len(page_items) - len(new_items)
        result.duplicates += duplicates
        result.items.extend(new_items)

        sink.gauge("collector.items_per_page", len(page_items), page=result.pages_visited)
        if duplicates:
            sink.increment("collector.duplicates", duplicates, page=result.pages_visited)
        log.info("Found %d unique items so far", len(result.items))

        if len(result.items) >= target_count:
            sink.increment("collector.target_reached")
            break

        if result.iterations >= max_iterations:
            break
        if not await fetcher.has_next_page():
            log.info("No more pages to load")
            result.exhausted = True
            sink.increment("collector.pagination_ended", reason="no_next_page")
            break
        try:
            await fetcher.advance_page()
        except PaginationError as exc:
            log.warning("Loading the next page failed, stopping: %s", exc)
            result.exhausted = True
            sink.increment("collector.pagination_ended", reason="advance_failed")
            break

    if len(result.items) < target_count:
        raise IncompleteCollectionError(len(result.items), target_count)

    del result.items[target_count:]
    return result
