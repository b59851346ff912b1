import asyncio
from contextlib import asynccontextmanager

import pytest

from config.settings import settings
from conftest import make_items
from data.repositories import RunRepository
from scrapers import scheduler as scheduler_module
from scrapers.replay import ReplayPageFetcher
from scrapers.scheduler import AuditAlreadyRunning, AuditScheduler


@pytest.fixture
def patched(session_factory, monkeypatch):
    @asynccontextmanager
    async def get_session():
        async with session_factory() as session:
            yield session
            await session.commit()

    monkeypatch.setattr(scheduler_module, "get_session", get_session)
    monkeypatch.setattr(settings, "TARGET_COUNT", 20)
    monkeypatch.setattr(settings, "MAX_ITERATIONS", 5)
    monkeypatch.setattr(settings, "LISTING_URL", "https://example.test/newest")
    return session_factory


@pytest.mark.asyncio
async def test_run_now_persists_and_broadcasts(patched):
    events = []

    async def broadcast(data):
        events.append(data)

    audit = AuditScheduler(
        broadcast_fn=broadcast,
        fetcher_factory=lambda: ReplayPageFetcher([make_items("a", 25)]),
    )

    run_id, result = await audit.run_now()

    assert result.ok
    assert len(result.batch) == 20
    assert events[0]["event"] == "run_started"
    assert events[-1] == {
        "event": "run_complete",
        "run_id": run_id,
        "status": "success",
        "items": 20,
        "error": None,
    }
    assert any(e["event"] == "metric" for e in events)

    async with patched() as session:
        stored = await RunRepository(session).get_run(run_id)
    assert stored.total_items == 20


@pytest.mark.asyncio
async def test_run_now_refuses_overlapping_runs(patched):
    gate = asyncio.Event()

    class SlowFetcher(ReplayPageFetcher):
        async def navigate(self, url):
            await gate.wait()
            await super().navigate(url)

    audit = AuditScheduler(fetcher_factory=lambda: SlowFetcher([make_items("a", 25)]))
    first = asyncio.create_task(audit.run_now())
    await asyncio.sleep(0)

    assert audit.busy
    with pytest.raises(AuditAlreadyRunning):
        await audit.run_now()

    gate.set()
    _, result = await first
    assert result.ok
    assert not audit.busy


@pytest.mark.asyncio
async def test_fetcher_construction_failure_is_reported_and_stored(patched, monkeypatch):
    monkeypatch.setattr(settings, "FETCHER", "replay")
    monkeypatch.setattr(settings, "REPLAY_FILE", "")
    events = []

    async def broadcast(data):
        events.append(data)

    audit = AuditScheduler(broadcast_fn=broadcast)

    run_id, result = await audit.run_now()

    assert not result.ok
    assert result.failure.kind == "ValueError"
    assert "REPLAY_FILE" in result.failure.message
    assert events[-1]["event"] == "run_complete"
    assert events[-1]["status"] == "failed"
    assert events[-1]["error"] == "ValueError"

    async with patched() as session:
        stored = await RunRepository(session).get_run(run_id)
    assert stored.status == "failed"
    assert stored.source == "replay"
    assert stored.error_kind == "ValueError"


@pytest.mark.asyncio
async def test_missing_replay_file_is_a_failed_run(patched, tmp_path):
    def factory():
        return ReplayPageFetcher.from_file(tmp_path / "gone.json")

    audit = AuditScheduler(fetcher_factory=factory)

    run_id, result = await audit.run_now()

    assert run_id is not None
    assert result.failure.kind == "SourceUnavailableError"
    assert result.failure.context == {"url": str(tmp_path / "gone.json")}
