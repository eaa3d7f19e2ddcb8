"""SQLModel table definitions for the revalidation data layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class ValidationHistoryTable(SQLModel, table=True):
    """Latest validation record per ticket key."""

    __tablename__ = "validation_history"

    ticket_key: str = Field(sa_column=Column(String(255), primary_key=True, nullable=False))
    snapshot: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    field_results: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    overall_score: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    is_valid: bool = Field(default=False, sa_column=Column(Boolean, nullable=False))
    revision: int = Field(default=1, sa_column=Column(Integer, nullable=False))
    timestamp: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
