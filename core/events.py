"""Optional instrumentation sinks.

The pipeline reports timings, counters and gauges to an ``EventSink``. The
default sink drops everything; the absence of a real sink never changes what
the pipeline does.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

log = logging.getLogger(__name__)


class EventSink:
    """No-op sink. Subclasses override ``record``."""

    def record(self, kind: str, name: str, value: float, tags: dict[str, Any]) -> None:
        pass

    def timing(self, name: str, milliseconds: float, **tags: Any) -> None:
        self.record("timing", name, milliseconds, tags)

    def increment(self, name: str, value: float = 1, **tags: Any) -> None:
        self.record("count", name, value, tags)

    def gauge(self, name: str, value: float, **tags: Any) -> None:
        self.record("gauge", name, value, tags)


NULL_SINK = EventSink()


class LoggingSink(EventSink):
    """Writes every event to the log at DEBUG."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or log

    def record(self, kind: str, name: str, value: float, tags: dict[str, Any]) -> None:
        self._log.debug("%s %s=%s %s", kind, name, value, tags or "")


class BroadcastSink(EventSink):
    """Forwards events to an async broadcaster (e.g. the SSE endpoint)."""

    def __init__(self, broadcast_fn: Callable[[dict], Awaitable[None]]) -> None:
        self._broadcast = broadcast_fn
        self._pending: list[dict] = []

    def record(self, kind: str, name: str, value: float, tags: dict[str, Any]) -> None:
        self._pending.append(
            {"event": "metric", "kind": kind, "name": name, "value": value, "tags": tags}
        )

    async def flush(self) -> None:
        pending, self._pending = self._pending, []
        for event in pending:
            await self._broadcast(event)


class RecordingSink(EventSink):
    """Keeps events in memory; handy for inspection and tests."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, float, dict[str, Any]]] = []

    def record(self, kind: str, name: str, value: float, tags: dict[str, Any]) -> None:
        self.events.append((kind, name, value, tags))

    def names(self, kind: str | None = None) -> list[str]:
        return [e[1] for e in self.events if kind is None or e[0] == kind]


@asynccontextmanager
async def track_timing(
    sink: EventSink, name: str, **tags: Any
) -> AsyncIterator[None]:
    """Time the enclosed block and report it, tagging failures."""
    start = time.monotonic()
    log.debug("Starting %s", name)
    try:
        yield
    except Exception as exc:
        sink.timing(
            name,
            (time.monotonic() - start) * 1000,
            **tags,
            error=type(exc).__name__,
        )
        raise
    else:
        elapsed_ms = (time.monotonic() - start) * 1000
        sink.timing(name, elapsed_ms, **tags)
        log.debug("Completed %s in %.1f ms", name, elapsed_ms)
