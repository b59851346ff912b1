from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


@dataclass(frozen=True)
class Item:
    """A single listing entry as read from a page."""

    id: str  # stable within one run
    title: str
    relative_time_label: str | None = None


@dataclass(frozen=True)
class ParsedItem:
    """An item whose relative-time label has been resolved."""

    id: str
    title: str
    absolute_time: datetime
    position: int  # page-arrival index


@dataclass(frozen=True)
class Batch:
    """The validated, sorted, fixed-size outcome of one run."""

    items: tuple[ParsedItem, ...]
    tie_break: str = "title"

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[ParsedItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> ParsedItem:
        return self.items[index]

    @property
    def newest(self) -> ParsedItem | None:
        return self.items[0] if self.items else None

    @property
    def oldest(self) -> ParsedItem | None:
        return self.items[-1] if self.items else None

    @property
    def time_span(self) -> timedelta:
        if not self.items:
            return timedelta(0)
        return self.items[0].absolute_time - self.items[-1].absolute_time


@dataclass
class CollectionResult:
    """Items accepted by the collector plus what it saw on the way."""

    items: list[Item]
    pages_visited: int = 0
    items_seen: int = 0
    duplicates: int = 0
    iterations: int = 0
    exhausted: bool = False


@dataclass
class RunStats:
    elapsed_seconds: float = 0.0
    pages_visited: int = 0
    items_seen: int = 0
    duplicates: int = 0
    iterations: int = 0


@dataclass
class RunFailure:
    kind: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class RunResult:
    """Outcome of a single audit run: a validated batch or a failure."""

    status: str  # "success" or "failed"
    started_at: datetime
    finished_at: datetime
    stats: RunStats
    batch: Batch | None = None
    failure: RunFailure | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "elapsed_seconds": round(self.stats.elapsed_seconds, 3),
            "pages_visited": self.stats.pages_visited,
            "items_seen": self.stats.items_seen,
            "duplicates": self.stats.duplicates,
            "iterations": self.stats.iterations,
        }
        if self.batch is not None:
            newest, oldest = self.batch.newest, self.batch.oldest
            data.update(
                {
                    "total_items": len(self.batch),
                    "tie_break": self.batch.tie_break,
                    "newest_title": newest.title if newest else None,
                    "newest_time": newest.absolute_time.isoformat() if newest else None,
                    "oldest_title": oldest.title if oldest else None,
                    "oldest_time": oldest.absolute_time.isoformat() if oldest else None,
                    "time_span_hours": round(
                        self.batch.time_span.total_seconds() / 3600, 2
                    ),
                }
            )
        if self.failure is not None:
            data["error"] = {
                "kind": self.failure.kind,
                "message": self.failure.message,
                "context": self.failure.context,
            }
        return data
