"""Incremental ticket validation: snapshots, field results, history cache and orchestration."""

from .fields import FIELD_ORDER, InvalidValidationInput, TicketField, changed_fields, ordered_fields
from .jira import snapshot_from_jira_issue
from .merge import AggregateScore, RoundingMode, ScoringPolicy, merge_field_results
from .models import (
    FieldValidationResult,
    RevalidationOutcome,
    TicketSnapshot,
    ValidationHistoryEntry,
    ValidationKind,
)
from .repository import CacheStore, CacheStoreError, StaleEntryError, ValidationHistoryRepository
from .service import BatchItemResult, ConcurrentRevalidationError, RevalidationService
from .validator import (
    ChatCompletionFieldValidator,
    FieldValidationError,
    FieldValidationRequest,
    FieldValidator,
)

__all__ = [
    "AggregateScore",
    "BatchItemResult",
    "CacheStore",
    "CacheStoreError",
    "ChatCompletionFieldValidator",
    "ConcurrentRevalidationError",
    "FIELD_ORDER",
    "FieldValidationError",
    "FieldValidationRequest",
    "FieldValidationResult",
    "FieldValidator",
    "InvalidValidationInput",
    "RevalidationOutcome",
    "RevalidationService",
    "RoundingMode",
    "ScoringPolicy",
    "StaleEntryError",
    "TicketField",
    "TicketSnapshot",
    "ValidationHistoryEntry",
    "ValidationHistoryRepository",
    "ValidationKind",
    "changed_fields",
    "merge_field_results",
    "ordered_fields",
    "snapshot_from_jira_issue",
]
