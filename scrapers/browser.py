"""Browser page fetcher driven by Playwright (Chromium)."""

from __future__ import annotations

import logging

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from config.settings import settings
from core.errors import PaginationError, SourceUnavailableError
from core.models import Item
from scrapers.base import PageFetcher
from scrapers.news import LISTING_SELECTORS

log = logging.getLogger(__name__)

# Runs in the page; returns {id, title, age} for every listing row.
_EXTRACT_JS = """
(rows) => rows.map((row) => {
    const link = row.querySelector('.titleline > a');
    const subtext = row.nextElementSibling;
    const age = subtext ? subtext.querySelector('.age a') : null;
    return {
        id: row.getAttribute('id'),
        title: link ? link.textContent : null,
        age: age ? age.textContent : null,
    };
})
"""


class BrowserPageFetcher(PageFetcher):
    """One browser, one context, one page; torn down on ``close``."""

    source_name = "browser"

    def __init__(
        self,
        headless: bool | None = None,
        next_page_timeout: float | None = None,
        settle_seconds: float | None = None,
    ) -> None:
        self._headless = settings.BROWSER_HEADLESS if headless is None else headless
        self._next_timeout_ms = int(
            (settings.NEXT_PAGE_TIMEOUT_SECONDS if next_page_timeout is None else next_page_timeout)
            * 1000
        )
        self._settle_ms = int(
            (settings.PAGE_SETTLE_SECONDS if settle_seconds is None else settle_seconds) * 1000
        )
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    async def open(self) -> None:
        if self._page is not None:
            return
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self._headless)
            self._context = await self._browser.new_context()
            self._page = await self._context.new_page()
        except PlaywrightError as exc:
            await self.close()
            raise SourceUnavailableError(f"Cannot start browser: {exc}") from exc
        log.info("Browser started (headless=%s)", self._headless)

    async def close(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        except PlaywrightError as exc:
            log.warning("Error closing browser: %s", exc)
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
            if self._browser is not None:
                log.info("Browser closed")
            self._playwright = None
            self._browser = None
            self._context = None
            self._page = None

    async def navigate(self, url: str) -> None:
        page = self._require_page()
        try:
            await page.goto(url)
            await page.wait_for_selector(
                LISTING_SELECTORS["row"], state="attached", timeout=self._next_timeout_ms
            )
        except PlaywrightError as exc:
            raise SourceUnavailableError(f"Cannot load listing: {exc}", url=url) from exc
        log.info("Navigated to %s", url)

    async def current_items(self) -> list[Item]:
        page = self._require_page()
        rows = await page.eval_on_selector_all(LISTING_SELECTORS["row"], _EXTRACT_JS)
        items: list[Item] = []
        for row in rows:
            title = (row.get("title") or "").strip()
            if not row.get("id") or not title:
                log.debug("Skipping malformed row %r", row.get("id"))
                continue
            items.append(Item(id=row["id"], title=title, relative_time_label=row.get("age")))
        return items

    async def has_next_page(self) -> bool:
        page = self._require_page()
        try:
            await page.wait_for_selector(
                LISTING_SELECTORS["more"], state="visible", timeout=self._next_timeout_ms
            )
        except PlaywrightError:
            return False
        return True

    async def advance_page(self) -> None:
        page = self._require_page()
        try:
            await page.click(LISTING_SELECTORS["more"])
            await page.wait_for_timeout(self._settle_ms)
        except PlaywrightError as exc:
            raise PaginationError(f"Clicking 'More' failed: {exc}") from exc
        log.info("Clicked 'More', next page loaded")

    def _require_page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser is not open")
        return self._page
