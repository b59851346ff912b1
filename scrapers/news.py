"""HTTP page fetcher: plain requests plus CSS selection, no browser."""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import urljoin

from scrapling import Fetcher

from config.settings import settings
from core.errors import PaginationError, SourceUnavailableError
from core.models import Item
from scrapers.base import PageFetcher, RateLimiter

log = logging.getLogger(__name__)

# Selectors for the Hacker News listing markup.
LISTING_SELECTORS: dict[str, str] = {
    "row": "tr.athing",
    "title": ".titleline > a",
    "age": "span.age > a",
    "more": "a.morelink",
}

_ITEM_ID_RE = re.compile(r"id=(\w+)")


def extract_items(page) -> list[Item]:
    """Pull ``Item`` rows out of a parsed listing page.

    The age link of each row points at ``item?id=<id>``, which is how the
    label is matched back to its row.
    """
    ages: dict[str, str] = {}
    for el in page.css(LISTING_SELECTORS["age"]):
        match = _ITEM_ID_RE.search(el.attrib.get("href", ""))
        if match:
            ages[match.group(1)] = el.text.strip() if el.text else ""

    items: list[Item] = []
    for row in page.css(LISTING_SELECTORS["row"]):
        item_id = row.attrib.get("id", "")
        links = row.css(LISTING_SELECTORS["title"])
        title = links[0].text.strip() if links and links[0].text else ""
        if not item_id or not title:
            log.debug("Skipping malformed row %r", item_id)
            continue
        items.append(
            Item(id=item_id, title=title, relative_time_label=ages.get(item_id))
        )
    return items


def extract_next_url(page, base_url: str) -> str | None:
    links = page.css(LISTING_SELECTORS["more"])
    if not links:
        return None
    href = links[0].attrib.get("href", "")
    return urljoin(base_url, href) if href else None


class NewsPageFetcher(PageFetcher):
    """Fetches listing pages over HTTP and follows the "More" link."""

    source_name = "http"

    def __init__(self, request_delay: float | None = None) -> None:
        delay = settings.SCRAPE_REQUEST_DELAY if request_delay is None else request_delay
        self._limiter = RateLimiter(delay)
        self._fetcher: Fetcher | None = None
        self._page = None
        self._url: str | None = None

    async def open(self) -> None:
        if self._fetcher is None:
            self._fetcher = Fetcher()

    async def close(self) -> None:
        self._fetcher = None
        self._page = None

    async def navigate(self, url: str) -> None:
        try:
            await self._load(url)
        except ConnectionError as exc:
            raise SourceUnavailableError(f"Cannot reach listing: {exc}", url=url) from exc
        log.info("Navigated to %s", url)

    async def current_items(self) -> list[Item]:
        if self._page is None:
            raise RuntimeError("navigate() must be called first")
        return extract_items(self._page)

    async def has_next_page(self) -> bool:
        if self._page is None:
            return False
        return extract_next_url(self._page, self._url or "") is not None

    async def advance_page(self) -> None:
        next_url = extract_next_url(self._page, self._url or "") if self._page else None
        if next_url is None:
            raise PaginationError("No 'More' link on the current page")
        try:
            await self._load(next_url)
        except ConnectionError as exc:
            raise PaginationError(f"Loading {next_url} failed: {exc}") from exc
        log.info("Followed 'More' link to %s", next_url)

    async def _load(self, url: str) -> None:
        if self._fetcher is None:
            await self.open()
        await self._limiter.wait()
        self._page = await asyncio.to_thread(self._get, url)
        self._url = url

    def _get(self, url: str):
        try:
            page = self._fetcher.get(
                url,
                stealthy_headers=True,
                follow_redirects=True,
            )
        except Exception as exc:
            raise ConnectionError(str(exc)) from exc
        if page.status != 200:
            raise ConnectionError(f"HTTP {page.status}")
        return page
