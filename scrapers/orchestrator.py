from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from config.settings import settings
from core.collector import collect
from core.errors import AuditError
from core.events import NULL_SINK, EventSink, track_timing
from core.models import CollectionResult, RunFailure, RunResult, RunStats
from core.sorter import finalize
from scrapers.base import PageFetcher

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_fetcher(kind: str | None = None, replay_file: str | None = None) -> PageFetcher:
    """Return the page fetcher named by ``kind`` (defaults to settings)."""
    kind = kind or settings.FETCHER
    if kind == "browser":
        from scrapers.browser import BrowserPageFetcher

        return BrowserPageFetcher()
    if kind == "http":
        from scrapers.news import NewsPageFetcher

        return NewsPageFetcher()
    if kind == "replay":
        from scrapers.replay import ReplayPageFetcher

        path = replay_file or settings.REPLAY_FILE
        if not path:
            raise ValueError("The replay fetcher needs REPLAY_FILE")
        return ReplayPageFetcher.from_file(path)
    raise ValueError(f"Unknown fetcher: {kind}")


async def run_audit(
    fetcher: PageFetcher,
    *,
    url: str | None = None,
    target_count: int | None = None,
    max_iterations: int | None = None,
    tie_break: str | None = None,
    sink: EventSink | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> RunResult:
    """Collect, sort and validate one batch from ``fetcher``.

    The fetcher is closed on every exit path. Errors become a failed
    ``RunResult``; cancellation propagates once the fetcher is closed.
    """
    if url is None:
        url = settings.LISTING_URL
    if target_count is None:
        target_count = settings.TARGET_COUNT
    if max_iterations is None:
        max_iterations = settings.MAX_ITERATIONS
    if tie_break is None:
        tie_break = settings.TIE_BREAK
    sink = sink or NULL_SINK

    started_at = clock()
    start = time.monotonic()
    collection: CollectionResult | None = None
    log.info("Starting item collection from %s (%s)", url, fetcher.source_name)

    try:
        async with fetcher:
            async with track_timing(sink, "navigate", source=fetcher.source_name):
                await fetcher.navigate(url)
            async with track_timing(sink, "collect"):
                collection = await collect(fetcher, target_count, max_iterations, sink)
            async with track_timing(sink, "finalize"):
                batch = finalize(collection.items, clock(), tie_break, sink)
    except Exception as exc:
        if isinstance(exc, AuditError):
            log.error("Audit failed: %s", exc)
        else:
            log.exception("Audit failed with an unexpected error")
        sink.increment("run.failure", kind=type(exc).__name__)
        return failed_result(
            exc,
            started_at=started_at,
            finished_at=clock(),
            stats=_stats(collection, time.monotonic() - start),
        )

    stats = _stats(collection, time.monotonic() - start)
    sink.increment("run.success")
    sink.gauge("run.pages_visited", stats.pages_visited)
    log.info(
        "Audit completed successfully | %d items | %d pages | %.2fs",
        len(batch),
        stats.pages_visited,
        stats.elapsed_seconds,
    )
    return RunResult(
        status="success",
        started_at=started_at,
        finished_at=clock(),
        stats=stats,
        batch=batch,
    )


def _stats(collection: CollectionResult | None, elapsed: float) -> RunStats:
    if collection is None:
        return RunStats(elapsed_seconds=elapsed)
    return RunStats(
        elapsed_seconds=elapsed,
        pages_visited=collection.pages_visited,
        items_seen=collection.items_seen,
        duplicates=collection.duplicates,
        iterations=collection.iterations,
    )


def failed_result(
    exc: Exception,
    *,
    started_at: datetime,
    finished_at: datetime | None = None,
    stats: RunStats | None = None,
) -> RunResult:
    """Wrap ``exc`` in a failed ``RunResult``."""
    return RunResult(
        status="failed",
        started_at=started_at,
        finished_at=finished_at or started_at,
        stats=stats or RunStats(),
        failure=RunFailure(
            kind=type(exc).__name__,
            message=str(exc),
            context=exc.context() if isinstance(exc, AuditError) else {},
        ),
    )
