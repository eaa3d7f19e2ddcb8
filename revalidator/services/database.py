from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine


def to_async_dsn(dsn: str) -> str:
    """Ensure the DSN uses an async SQLAlchemy driver (asyncpg for PostgreSQL)."""

    if dsn.startswith("postgresql+asyncpg://") or "+aiosqlite" in dsn:
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    if dsn.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + dsn[len("sqlite://") :]
    return dsn


def create_engine(dsn: str) -> AsyncEngine:
    return create_async_engine(to_async_dsn(dsn), pool_pre_ping=True)


@dataclass(slots=True)
class DatabaseHealthCheck:
    """Explicit connectivity probe against the history database."""

    engine: AsyncEngine

    async def test_connection(self) -> bool:
        try:
            async with self.engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True
