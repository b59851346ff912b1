from datetime import datetime, timezone

import pytest
import pytest_asyncio

from core.models import Item
from data.database import init_db, make_engine, make_session_factory

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_items(prefix: str, count: int, label: str = "1 hour ago", start: int = 0) -> list[Item]:
    return [
        Item(id=f"{prefix}{i}", title=f"{prefix} story {i:03d}", relative_time_label=label)
        for i in range(start, start + count)
    ]


@pytest.fixture
def now():
    return NOW


@pytest_asyncio.fixture
async def session_factory():
    engine = make_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield make_session_factory(engine)
    await engine.dispose()
