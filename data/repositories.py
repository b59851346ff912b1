from __future__ import annotations

from sqlalchemy import Integer, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.models import RunResult
from data.schema import DBAuditRun, DBRunItem

# ── RunRepository ────────────────────────────────────────────────────


class RunRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._s = session

    async def log_run(self, result: RunResult, *, source: str) -> DBAuditRun:
        """Persist one run and, on success, its sorted batch."""
        run = DBAuditRun(
            source=source,
            status=result.status,
            tie_break=result.batch.tie_break if result.batch else "",
            total_items=len(result.batch) if result.batch else 0,
            pages_visited=result.stats.pages_visited,
            items_seen=result.stats.items_seen,
            duplicates=result.stats.duplicates,
            error_kind=result.failure.kind if result.failure else "",
            error_message=result.failure.message[:500] if result.failure else "",
            duration_seconds=round(result.stats.elapsed_seconds, 2),
            started_at=result.started_at,
            finished_at=result.finished_at,
        )
        if result.batch is not None:
            run.items = [
                DBRunItem(
                    rank=rank,
                    item_id=item.id,
                    title=item.title,
                    published_at=item.absolute_time,
                )
                for rank, item in enumerate(result.batch)
            ]
        self._s.add(run)
        await self._s.flush()
        return run

    async def recent_runs(self, limit: int = 20) -> list[DBAuditRun]:
        q = (
            select(DBAuditRun)
            .order_by(DBAuditRun.started_at.desc(), DBAuditRun.id.desc())
            .limit(limit)
        )
        result = await self._s.execute(q)
        return list(result.scalars().all())

    async def get_run(self, run_id: int) -> DBAuditRun | None:
        q = (
            select(DBAuditRun)
            .where(DBAuditRun.id == run_id)
            .options(selectinload(DBAuditRun.items))
        )
        result = await self._s.execute(q)
        return result.scalar_one_or_none()

    async def stats(self) -> dict:
        """Total runs, success rate and last run time."""
        q = select(
            func.count(DBAuditRun.id),
            func.sum(func.cast(DBAuditRun.status == "success", Integer)),
            func.max(DBAuditRun.started_at),
            func.avg(DBAuditRun.duration_seconds),
        )
        total, successes, last_run, avg_duration = (await self._s.execute(q)).one()
        total = total or 0
        return {
            "total_runs": total,
            "successful_runs": successes or 0,
            "success_rate": round((successes or 0) / max(total, 1) * 100, 0),
            "last_run": last_run.isoformat() if last_run else None,
            "avg_duration_seconds": round(avg_duration or 0.0, 2),
        }
