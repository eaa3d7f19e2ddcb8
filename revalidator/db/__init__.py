"""Database models shared by the revalidation service."""

from .models import ValidationHistoryTable

__all__ = ["ValidationHistoryTable"]
