from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from revalidator.db.models import ValidationHistoryTable
from revalidator.validation.models import FieldValidationResult, TicketSnapshot, ValidationHistoryEntry
from revalidator.validation.repository import CacheStoreError, StaleEntryError, ValidationHistoryRepository


def _make_entry(key: str = "T-1", *, score: int = 8, summary: str = "Summary") -> ValidationHistoryEntry:
    snapshot = TicketSnapshot(
        key=key,
        summary=summary,
        description="Body",
        priority="High",
        status="To Do",
        reporter="alice",
    )
    results = [
        FieldValidationResult(field="summary", score=score, is_valid=True, issues=[], suggestions=["keep"]),
        FieldValidationResult(field="description", score=score, is_valid=True, issues=["short"], suggestions=[]),
    ]
    return ValidationHistoryEntry(
        ticket_key=key,
        snapshot=snapshot,
        field_results=results,
        overall_score=score,
        is_valid=True,
        timestamp=datetime.now(timezone.utc),
    )


@pytest.mark.asyncio
async def test_ensure_schema_creates_history_table(engine: AsyncEngine):
    repo = ValidationHistoryRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    await repo.ensure_schema()

    async with engine.begin() as conn:
        tables = await conn.run_sync(lambda sync_conn: set(sa_inspect(sync_conn).get_table_names()))
    assert "validation_history" in tables


@pytest.mark.asyncio
async def test_ensure_schema_requires_engine():
    repo = ValidationHistoryRepository(MagicMock())
    with pytest.raises(RuntimeError):
        await repo.ensure_schema()


@pytest.mark.asyncio
async def test_get_missing_entry_returns_none(repository: ValidationHistoryRepository):
    assert await repository.get("T-404") is None


@pytest.mark.asyncio
async def test_put_then_get_round_trips_entry(repository: ValidationHistoryRepository):
    entry = _make_entry()

    stored = await repository.put(entry, expected_revision=None)
    loaded = await repository.get("T-1")

    assert stored.revision == 1
    assert loaded is not None
    assert loaded.snapshot == entry.snapshot
    assert loaded.field_results == entry.field_results
    assert loaded.overall_score == 8
    assert loaded.revision == 1
    assert loaded.timestamp == entry.timestamp


@pytest.mark.asyncio
async def test_put_replaces_entry_and_bumps_revision(repository: ValidationHistoryRepository):
    first = await repository.put(_make_entry(score=8), expected_revision=None)

    second = await repository.put(_make_entry(score=5, summary="New"), expected_revision=first.revision)
    loaded = await repository.get("T-1")

    assert second.revision == 2
    assert loaded is not None
    assert loaded.overall_score == 5
    assert loaded.snapshot.summary == "New"
    assert len(await repository.list_entries()) == 1


@pytest.mark.asyncio
async def test_put_with_stale_revision_is_rejected(repository: ValidationHistoryRepository):
    first = await repository.put(_make_entry(score=8), expected_revision=None)
    await repository.put(_make_entry(score=6), expected_revision=first.revision)

    with pytest.raises(StaleEntryError):
        await repository.put(_make_entry(score=2), expected_revision=first.revision)

    loaded = await repository.get("T-1")
    assert loaded is not None
    assert loaded.overall_score == 6


@pytest.mark.asyncio
async def test_insert_over_existing_entry_is_rejected(repository: ValidationHistoryRepository):
    await repository.put(_make_entry(score=8), expected_revision=None)

    with pytest.raises(StaleEntryError):
        await repository.put(_make_entry(score=3), expected_revision=None)


@pytest.mark.asyncio
async def test_clear_all_removes_every_entry(repository: ValidationHistoryRepository):
    await repository.put(_make_entry("T-1"), expected_revision=None)
    await repository.put(_make_entry("T-2"), expected_revision=None)

    assert await repository.clear_all() == 2
    assert await repository.get("T-1") is None
    assert await repository.list_entries() == []


@pytest.mark.asyncio
async def test_list_entries_returns_newest_first(repository: ValidationHistoryRepository):
    older = _make_entry("T-1")
    newer = replace(_make_entry("T-2"), timestamp=older.timestamp.replace(year=older.timestamp.year + 1))
    await repository.put(older, expected_revision=None)
    await repository.put(newer, expected_revision=None)

    entries = await repository.list_entries()

    assert [entry.ticket_key for entry in entries] == ["T-2", "T-1"]


@pytest.mark.asyncio
async def test_driver_errors_surface_as_cache_store_errors(engine: AsyncEngine):
    class BrokenSession:
        async def __aenter__(self):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        async def __aexit__(self, exc_type, exc, tb):
            return False

    repo = ValidationHistoryRepository(lambda: BrokenSession(), engine=engine)

    with pytest.raises(CacheStoreError):
        await repo.get("T-1")
    with pytest.raises(CacheStoreError):
        await repo.put(_make_entry(), expected_revision=None)
    with pytest.raises(CacheStoreError):
        await repo.clear_all()


@pytest.mark.asyncio
async def test_rows_store_json_payloads(repository: ValidationHistoryRepository, engine: AsyncEngine):
    await repository.put(_make_entry(), expected_revision=None)

    async with async_sessionmaker(engine, expire_on_commit=False)() as session:
        row = await session.get(ValidationHistoryTable, "T-1")

    assert row is not None
    assert row.snapshot["key"] == "T-1"
    assert [item["field"] for item in row.field_results] == ["summary", "description"]
