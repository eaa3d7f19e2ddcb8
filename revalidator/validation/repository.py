from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol, Sequence

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from revalidator.db.models import ValidationHistoryTable

from .models import FieldValidationResult, TicketSnapshot, ValidationHistoryEntry

logger = logging.getLogger(__name__)


class CacheStoreError(RuntimeError):
    """Raised when the validation history store cannot be read or written."""


class StaleEntryError(RuntimeError):
    """Raised when a compare-and-swap write finds a newer stored revision."""

    def __init__(self, ticket_key: str, expected_revision: int | None) -> None:
        super().__init__(
            f"Validation history for {ticket_key} changed since revision {expected_revision}"
        )
        self.ticket_key = ticket_key
        self.expected_revision = expected_revision


class CacheStore(Protocol):
    async def get(self, ticket_key: str) -> ValidationHistoryEntry | None:
        ...

    async def put(
        self, entry: ValidationHistoryEntry, *, expected_revision: int | None
    ) -> ValidationHistoryEntry:
        ...

    async def clear_all(self) -> int:
        ...

    async def list_entries(self) -> Sequence[ValidationHistoryEntry]:
        ...


class ValidationHistoryRepository:
    """Durable store wrapping the `validation_history` table, one row per ticket key."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        try:
            async with self._engine.begin() as connection:
                await connection.run_sync(SQLModel.metadata.create_all)
        except SQLAlchemyError as exc:
            raise CacheStoreError("Failed to create validation history schema") from exc

    async def get(self, ticket_key: str) -> ValidationHistoryEntry | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(ValidationHistoryTable, ticket_key)
        except SQLAlchemyError as exc:
            raise CacheStoreError(f"Failed to read validation history for {ticket_key}") from exc
        if row is None:
            return None
        return self._table_to_entry(row)

    async def put(
        self, entry: ValidationHistoryEntry, *, expected_revision: int | None
    ) -> ValidationHistoryEntry:
        """Replace the stored entry if its revision still equals ``expected_revision``.

        ``expected_revision=None`` means no entry is expected to exist yet.
        """

        revision = 1 if expected_revision is None else expected_revision + 1
        stored = replace(entry, revision=revision)
        values = self._entry_to_values(stored)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    if expected_revision is None:
                        session.add(ValidationHistoryTable(ticket_key=stored.ticket_key, **values))
                    else:
                        result = await session.execute(
                            update(ValidationHistoryTable)
                            .where(ValidationHistoryTable.ticket_key == stored.ticket_key)
                            .where(ValidationHistoryTable.revision == expected_revision)
                            .values(**values)
                        )
                        if result.rowcount != 1:
                            raise StaleEntryError(stored.ticket_key, expected_revision)
        except IntegrityError as exc:
            raise StaleEntryError(stored.ticket_key, expected_revision) from exc
        except SQLAlchemyError as exc:
            raise CacheStoreError(f"Failed to write validation history for {stored.ticket_key}") from exc
        logger.debug("Stored validation history for %s at revision %d", stored.ticket_key, revision)
        return stored

    async def clear_all(self) -> int:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(delete(ValidationHistoryTable))
        except SQLAlchemyError as exc:
            raise CacheStoreError("Failed to clear validation history") from exc
        removed = max(result.rowcount or 0, 0)
        logger.info("Cleared %d validation history entries", removed)
        return removed

    async def list_entries(self) -> Sequence[ValidationHistoryEntry]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ValidationHistoryTable).order_by(ValidationHistoryTable.timestamp.desc())
                )
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise CacheStoreError("Failed to list validation history") from exc
        return [self._table_to_entry(row) for row in rows]

    @staticmethod
    def _entry_to_values(entry: ValidationHistoryEntry) -> dict[str, object]:
        return {
            "snapshot": entry.snapshot.to_dict(),
            "field_results": [result.to_dict() for result in entry.field_results],
            "overall_score": entry.overall_score,
            "is_valid": entry.is_valid,
            "revision": entry.revision,
            "timestamp": entry.timestamp,
        }

    @staticmethod
    def _table_to_entry(row: ValidationHistoryTable) -> ValidationHistoryEntry:
        return ValidationHistoryEntry(
            ticket_key=row.ticket_key,
            snapshot=TicketSnapshot.from_dict(row.snapshot),
            field_results=[FieldValidationResult.from_dict(item) for item in row.field_results or []],
            overall_score=row.overall_score,
            is_valid=row.is_valid,
            timestamp=_ensure_datetime(row.timestamp),
            revision=row.revision,
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
