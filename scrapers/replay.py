"""Replay recorded listing pages instead of touching the network."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from core.errors import PaginationError, SourceUnavailableError
from core.models import Item
from scrapers.base import PageFetcher

log = logging.getLogger(__name__)


class ReplayPageFetcher(PageFetcher):
    """Serves a fixed sequence of pages.

    The JSON file format is a list of pages, each a list of objects with
    ``id``, ``title`` and optional ``age`` (the relative-time label).
    """

    source_name = "replay"

    def __init__(self, pages: Sequence[Sequence[Item]]) -> None:
        self._pages = [list(page) for page in pages]
        self._index = 0
        self.opened = False
        self.closed = False
        self.visited_url: str | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> ReplayPageFetcher:
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SourceUnavailableError(f"Cannot load replay file: {exc}", url=str(path)) from exc
        try:
            pages = [[_entry_to_item(entry) for entry in page] for page in raw]
        except (KeyError, TypeError, AttributeError) as exc:
            raise SourceUnavailableError(
                f"Malformed replay entry: missing or invalid {exc}", url=str(path)
            ) from exc
        pages = [[item for item in page if item is not None] for page in pages]
        log.info("Loaded %d replay pages from %s", len(pages), path)
        return cls(pages)

    @property
    def page_number(self) -> int:
        return self._index + 1

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def navigate(self, url: str) -> None:
        if not self._pages:
            raise SourceUnavailableError("Replay has no pages", url=url)
        self.visited_url = url
        self._index = 0

    async def current_items(self) -> list[Item]:
        return list(self._pages[self._index])

    async def has_next_page(self) -> bool:
        return self._index + 1 < len(self._pages)

    async def advance_page(self) -> None:
        if not await self.has_next_page():
            raise PaginationError(f"No page after page {self.page_number}")
        self._index += 1


def _entry_to_item(entry: dict) -> Item | None:
    title = (entry["title"] or "").strip()
    if not title:
        log.debug("Skipping replay entry %r without a title", entry.get("id"))
        return None
    return Item(id=str(entry["id"]), title=title, relative_time_label=entry.get("age"))
