"""Map issue tracker search results into ticket snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from .models import TicketSnapshot

# Block nodes followed by a line break when flattening Atlassian Document Format.
_ADF_BLOCK_TYPES = frozenset({"paragraph", "heading", "bulletList", "orderedList"})


def _mapping(value: Any) -> Mapping[str, Any]:
    """Treat anything that is not a JSON object as absent."""

    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def extract_adf_text(document: Mapping[str, Any] | None) -> str:
    """Flatten an Atlassian Document Format tree into plain text.

    Nodes that are not objects and ``content`` values that are not lists are skipped.
    """

    parts: list[str] = []

    def visit(node: Any) -> None:
        if not isinstance(node, Mapping):
            return
        node_type = node.get("type")
        if node_type == "text":
            parts.append(_text(node.get("text")) or "")
        elif node_type == "hardBreak":
            parts.append("\n")
        else:
            children = node.get("content")
            for child in children if isinstance(children, list) else ():
                visit(child)
        if node_type in _ADF_BLOCK_TYPES:
            parts.append("\n")

    content = _mapping(document).get("content")
    for node in content if isinstance(content, list) else ():
        visit(node)
    return "".join(parts).strip()


def _user_name(user: Any) -> str | None:
    user = _mapping(user)
    return _text(user.get("displayName")) or _text(user.get("name"))


def _named(value: Any) -> str | None:
    return _text(_mapping(value).get("name"))


def snapshot_from_jira_issue(issue: Mapping[str, Any]) -> TicketSnapshot:
    """Build a snapshot from one issue of a REST v2/v3 search response.

    Missing or malformed values fall back to placeholders; a missing key raises
    :class:`~revalidator.validation.fields.InvalidValidationInput`.
    """

    fields = _mapping(_mapping(issue).get("fields"))
    raw_description = fields.get("description")
    if isinstance(raw_description, str):
        description = raw_description
    else:
        description = extract_adf_text(_mapping(raw_description))

    key = _mapping(issue).get("key")
    return TicketSnapshot(
        key=key if isinstance(key, str) else "",
        summary=_text(fields.get("summary")) or "No summary",
        description=description or "No description provided",
        priority=_named(fields.get("priority")) or "Unknown",
        status=_named(fields.get("status")) or "Unknown",
        assignee=_user_name(fields.get("assignee")),
        reporter=_user_name(fields.get("reporter")) or "Unknown",
        created=_text(fields.get("created")) or datetime.now(timezone.utc).isoformat(),
    )
