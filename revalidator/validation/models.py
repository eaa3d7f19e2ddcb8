from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Sequence

from .fields import InvalidValidationInput

MIN_FIELD_SCORE = 0
MAX_FIELD_SCORE = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ValidationKind(str, Enum):
    """How a revalidation request was satisfied."""

    FULL = "full"
    CACHED = "cached"
    PARTIAL = "partial"


@dataclass(frozen=True, slots=True)
class TicketSnapshot:
    """Immutable capture of the ticket fields relevant to change detection."""

    key: str
    summary: str
    description: str
    priority: str
    status: str
    reporter: str
    assignee: str | None = None
    created: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise InvalidValidationInput("Ticket snapshot requires a non-empty key")
        for name in ("summary", "description", "priority", "status", "reporter"):
            if not isinstance(getattr(self, name), str):
                raise InvalidValidationInput(f"Ticket snapshot field '{name}' must be a string")
        if self.assignee == "":
            object.__setattr__(self, "assignee", None)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TicketSnapshot":
        return cls(
            key=data["key"],
            summary=data["summary"],
            description=data["description"],
            priority=data["priority"],
            status=data["status"],
            reporter=data["reporter"],
            assignee=data.get("assignee"),
            created=data.get("created"),
        )


@dataclass(slots=True)
class FieldValidationResult:
    """Judgment for a single ticket field."""

    field: str
    score: int
    is_valid: bool
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    last_validated: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if isinstance(self.score, bool) or not isinstance(self.score, int):
            raise InvalidValidationInput(f"Score for field '{self.field}' must be an integer")
        if not MIN_FIELD_SCORE <= self.score <= MAX_FIELD_SCORE:
            raise InvalidValidationInput(
                f"Score for field '{self.field}' must be within {MIN_FIELD_SCORE}..{MAX_FIELD_SCORE}"
            )

    @classmethod
    def degraded(cls, field_name: str, reason: str) -> "FieldValidationResult":
        """Sentinel used when the field validator failed or returned unusable output."""

        return cls(
            field=field_name,
            score=0,
            is_valid=False,
            issues=[f"Failed to analyze field '{field_name}': {reason}"],
            suggestions=["Re-run validation to get proper analysis"],
        )

    @property
    def is_degraded(self) -> bool:
        return self.score == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "score": self.score,
            "is_valid": self.is_valid,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "last_validated": self.last_validated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldValidationResult":
        last_validated = data.get("last_validated")
        if isinstance(last_validated, str):
            parsed = datetime.fromisoformat(last_validated)
        elif isinstance(last_validated, datetime):
            parsed = last_validated
        else:
            parsed = utcnow()
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return cls(
            field=str(data["field"]),
            score=int(data["score"]),
            is_valid=bool(data["is_valid"]),
            issues=[str(item) for item in data.get("issues") or []],
            suggestions=[str(item) for item in data.get("suggestions") or []],
            last_validated=parsed,
        )


@dataclass(slots=True)
class ValidationHistoryEntry:
    """Durable per-ticket record pairing a snapshot with its field results."""

    ticket_key: str
    snapshot: TicketSnapshot
    field_results: Sequence[FieldValidationResult]
    overall_score: int
    is_valid: bool
    timestamp: datetime
    revision: int = 1

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(result.field for result in self.field_results)

    def result_for(self, field_name: str) -> FieldValidationResult | None:
        for result in self.field_results:
            if result.field == field_name:
                return result
        return None


@dataclass(slots=True)
class RevalidationOutcome:
    """Result of one revalidation request, with change transparency."""

    entry: ValidationHistoryEntry
    kind: ValidationKind
    changed_fields: tuple[str, ...] = ()
    reused_fields: tuple[str, ...] = ()

    @property
    def ticket_key(self) -> str:
        return self.entry.ticket_key
