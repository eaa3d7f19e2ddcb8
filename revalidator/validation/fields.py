from __future__ import annotations

from enum import Enum
from typing import Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import TicketSnapshot


class TicketField(str, Enum):
    """Ticket fields that participate in change detection and validation."""

    SUMMARY = "summary"
    DESCRIPTION = "description"
    PRIORITY = "priority"
    STATUS = "status"
    ASSIGNEE = "assignee"
    REPORTER = "reporter"


# Canonical ordering used for merged results and reported field lists.
FIELD_ORDER: tuple[str, ...] = tuple(field.value for field in TicketField)


class InvalidValidationInput(ValueError):
    """Raised when validation input is rejected before any collaborator call."""


def parse_fields(names: Iterable[str]) -> tuple[str, ...]:
    """Validate field names and return them in canonical order without duplicates."""

    requested = {str(name) for name in names}
    if not requested:
        raise InvalidValidationInput("At least one field must be configured for validation")
    unknown = requested.difference(FIELD_ORDER)
    if unknown:
        raise InvalidValidationInput(f"Unknown ticket field(s): {', '.join(sorted(unknown))}")
    return ordered_fields(requested)


def ordered_fields(names: Iterable[str]) -> tuple[str, ...]:
    """Sort field names by the canonical order; unknown names follow alphabetically."""

    unique = set(names)
    known = [name for name in FIELD_ORDER if name in unique]
    extra = sorted(unique.difference(FIELD_ORDER))
    return tuple(known + extra)


def field_value(snapshot: "TicketSnapshot", name: str) -> str | None:
    if name not in FIELD_ORDER:
        raise InvalidValidationInput(f"Unknown ticket field: {name}")
    return getattr(snapshot, name)


def changed_fields(current: "TicketSnapshot", previous: "TicketSnapshot") -> set[str]:
    """Return the names of compared fields whose values differ between snapshots.

    ``key`` and ``created`` are never compared. Snapshots store an unset assignee
    as ``None``, so any transition between unset and a concrete assignee counts.
    """

    return {name for name in FIELD_ORDER if getattr(current, name) != getattr(previous, name)}
