from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from core.models import Item


class PageFetcher(ABC):
    """Source of listing pages consumed by the collector.

    Implementations hold whatever resource they need (a browser, an HTTP
    session, fixture data) between ``open`` and ``close``.
    """

    source_name: str

    async def open(self) -> None:
        """Acquire resources."""

    async def close(self) -> None:
        """Release resources. Must be safe to call more than once."""

    async def __aenter__(self) -> PageFetcher:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Load the first listing page."""
        ...

    @abstractmethod
    async def current_items(self) -> list[Item]:
        """Return every item rendered on the current page, in page order."""
        ...

    @abstractmethod
    async def has_next_page(self) -> bool:
        """Whether a "next page" control is available within a short wait."""
        ...

    @abstractmethod
    async def advance_page(self) -> None:
        """Load the next page. Raises ``PaginationError`` on failure."""
        ...


class RateLimiter:
    """Simple token-bucket style rate limiter."""

    def __init__(self, delay_seconds: float = 2.0) -> None:
        self._delay = delay_seconds
        self._lock = asyncio.Lock()
        self._last_request: float = 0.0

    async def wait(self) -> None:
        async with self._lock:
            now = asyncio.get_running_loop().time()
            elapsed = now - self._last_request
            if elapsed < self._delay:
                await asyncio.sleep(self._delay - elapsed)
            self._last_request = asyncio.get_running_loop().time()
