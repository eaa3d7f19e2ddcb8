from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from revalidator.metrics import MetricsRegistry, register_default_metrics
from revalidator.validation.repository import ValidationHistoryRepository


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncEngine:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def repository(engine: AsyncEngine) -> ValidationHistoryRepository:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    repo = ValidationHistoryRepository(factory, engine=engine)
    await repo.ensure_schema()
    return repo


@pytest.fixture
def metrics() -> MetricsRegistry:
    return register_default_metrics(MetricsRegistry())
