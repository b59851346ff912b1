from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from data.database import get_session
from data.repositories import RunRepository
from scrapers.scheduler import AuditAlreadyRunning

router = APIRouter(prefix="/api/runs", tags=["runs"])

# The scheduler reference is injected by main.py at startup
_scheduler = None


def set_scheduler(scheduler) -> None:
    global _scheduler
    _scheduler = scheduler


def _run_to_dict(r) -> dict:
    return {
        "id": r.id,
        "source": r.source,
        "status": r.status,
        "tie_break": r.tie_break,
        "total_items": r.total_items,
        "pages_visited": r.pages_visited,
        "items_seen": r.items_seen,
        "duplicates": r.duplicates,
        "error_kind": r.error_kind,
        "error_message": r.error_message,
        "duration_seconds": r.duration_seconds,
        "started_at": r.started_at.isoformat() if r.started_at else None,
        "finished_at": r.finished_at.isoformat() if r.finished_at else None,
    }


@router.post("")
async def trigger_run():
    if _scheduler is None:
        raise HTTPException(503, "Scheduler not initialized")
    try:
        run_id, result = await _scheduler.run_now()
    except AuditAlreadyRunning as e:
        raise HTTPException(409, str(e)) from e
    return {"id": run_id, **result.to_dict()}


@router.get("")
async def recent_runs(limit: int = Query(20, ge=1, le=100)):
    async with get_session() as session:
        repo = RunRepository(session)
        runs = await repo.recent_runs(limit=limit)
        return [_run_to_dict(r) for r in runs]


@router.get("/stats")
async def run_stats():
    async with get_session() as session:
        return await RunRepository(session).stats()


@router.get("/status")
async def scheduler_status():
    if _scheduler is None:
        return {"running": False, "busy": False, "jobs": []}
    return _scheduler.get_status()


@router.get("/{run_id}")
async def get_run(run_id: int):
    async with get_session() as session:
        run = await RunRepository(session).get_run(run_id)
        if run is None:
            raise HTTPException(404, f"No run with id {run_id}")
        return {
            **_run_to_dict(run),
            "items": [
                {
                    "rank": i.rank,
                    "id": i.item_id,
                    "title": i.title,
                    "published_at": i.published_at.isoformat(),
                }
                for i in run.items
            ],
        }
