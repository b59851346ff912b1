from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config.settings import settings
from core.events import BroadcastSink, EventSink, LoggingSink
from core.models import RunResult
from data.database import get_session
from data.repositories import RunRepository
from scrapers.base import PageFetcher
from scrapers.orchestrator import build_fetcher, failed_result, run_audit

log = logging.getLogger(__name__)


class AuditAlreadyRunning(RuntimeError):
    pass


class AuditScheduler:
    """Runs audits on demand or on an interval and persists each outcome."""

    def __init__(
        self,
        broadcast_fn=None,
        fetcher_factory: Callable[[], PageFetcher] = build_fetcher,
    ) -> None:
        self._broadcast = broadcast_fn
        self._fetcher_factory = fetcher_factory
        self._scheduler = AsyncIOScheduler()
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def start(self) -> None:
        minutes = settings.RUN_INTERVAL_MINUTES
        if minutes > 0:
            self._scheduler.add_job(
                self._scheduled_run,
                "interval",
                minutes=minutes,
                id="audit",
                replace_existing=True,
            )
            # Also run once at startup
            self._scheduler.add_job(
                self._scheduled_run,
                "date",
                run_date=datetime.now(timezone.utc),
                id="audit_init",
            )
        self._scheduler.start()
        log.info("Audit scheduler started (interval: %s minutes)", minutes or "off")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def get_status(self) -> dict:
        jobs = []
        for job in self._scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run": job.next_run_time.isoformat()
                    if job.next_run_time
                    else None,
                }
            )
        return {"running": self._scheduler.running, "busy": self.busy, "jobs": jobs}

    async def run_now(self) -> tuple[int | None, RunResult]:
        """Run one audit immediately. Raises ``AuditAlreadyRunning`` if busy."""
        if self._lock.locked():
            raise AuditAlreadyRunning("An audit is already in progress")
        async with self._lock:
            return await self._run()

    async def _scheduled_run(self) -> None:
        if self._lock.locked():
            log.info("Skipping scheduled audit, previous run still in progress")
            return
        async with self._lock:
            await self._run()

    async def _run(self) -> tuple[int | None, RunResult]:
        sink: EventSink = BroadcastSink(self._broadcast) if self._broadcast else LoggingSink()
        try:
            fetcher = self._fetcher_factory()
        except Exception as e:
            log.error("Cannot create page fetcher: %s", e)
            source = settings.FETCHER
            await self._emit({"event": "run_started", "source": source})
            sink.increment("run.failure", kind=type(e).__name__)
            result = failed_result(e, started_at=datetime.now(timezone.utc))
        else:
            source = fetcher.source_name
            await self._emit({"event": "run_started", "source": source})
            result = await run_audit(fetcher, sink=sink)

        run_id = None
        try:
            async with get_session() as session:
                run = await RunRepository(session).log_run(result, source=source)
                run_id = run.id
        except Exception as e:
            log.error("Failed to persist audit run: %s", e)

        if isinstance(sink, BroadcastSink):
            await sink.flush()
        await self._emit(
            {
                "event": "run_complete",
                "run_id": run_id,
                "status": result.status,
                "items": len(result.batch) if result.batch else 0,
                "error": result.failure.kind if result.failure else None,
            }
        )
        return run_id, result

    async def _emit(self, data: dict) -> None:
        if self._broadcast:
            await self._broadcast(data)
