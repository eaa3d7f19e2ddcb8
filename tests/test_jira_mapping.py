import pytest

from revalidator.validation.fields import InvalidValidationInput
from revalidator.validation.jira import extract_adf_text, snapshot_from_jira_issue


def test_extract_adf_text_flattens_blocks():
    document = {
        "type": "doc",
        "version": 1,
        "content": [
            {"type": "heading", "content": [{"type": "text", "text": "Steps"}]},
            {
                "type": "paragraph",
                "content": [
                    {"type": "text", "text": "Open checkout"},
                    {"type": "hardBreak"},
                    {"type": "text", "text": "Pay as guest"},
                ],
            },
            {
                "type": "bulletList",
                "content": [
                    {
                        "type": "listItem",
                        "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Order placed"}]}],
                    }
                ],
            },
        ],
    }

    assert extract_adf_text(document) == "Steps\nOpen checkout\nPay as guest\nOrder placed"


@pytest.mark.parametrize("document", [None, {}, {"type": "doc", "content": []}])
def test_extract_adf_text_handles_empty_documents(document):
    assert extract_adf_text(document) == ""


def test_snapshot_from_issue_reads_nested_fields():
    issue = {
        "key": "SHOP-12",
        "fields": {
            "summary": "Guest checkout fails",
            "description": {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Body"}]}]},
            "priority": {"name": "High"},
            "status": {"name": "In Progress"},
            "assignee": {"displayName": "Bob Builder"},
            "reporter": {"displayName": "Alice"},
            "created": "2024-03-01T10:00:00.000+0000",
        },
    }

    snapshot = snapshot_from_jira_issue(issue)

    assert snapshot.key == "SHOP-12"
    assert snapshot.summary == "Guest checkout fails"
    assert snapshot.description == "Body"
    assert snapshot.priority == "High"
    assert snapshot.status == "In Progress"
    assert snapshot.assignee == "Bob Builder"
    assert snapshot.reporter == "Alice"
    assert snapshot.created == "2024-03-01T10:00:00.000+0000"


def test_snapshot_from_issue_fills_defaults():
    snapshot = snapshot_from_jira_issue({"key": "SHOP-13", "fields": {"description": "   "}})

    assert snapshot.summary == "No summary"
    assert snapshot.description == "   "
    assert snapshot.priority == "Unknown"
    assert snapshot.status == "Unknown"
    assert snapshot.reporter == "Unknown"
    assert snapshot.assignee is None
    assert snapshot.created is not None


def test_snapshot_from_issue_without_description_uses_placeholder():
    snapshot = snapshot_from_jira_issue({"key": "SHOP-14", "fields": {"description": None}})

    assert snapshot.description == "No description provided"


def test_snapshot_from_issue_requires_key():
    with pytest.raises(InvalidValidationInput):
        snapshot_from_jira_issue({"fields": {"summary": "Orphan"}})


def test_snapshot_from_issue_ignores_malformed_values():
    issue = {
        "key": "SHOP-15",
        "fields": {
            "summary": ["not", "text"],
            "description": {"type": "doc", "content": ["stray", {"type": "paragraph", "content": "oops"}]},
            "priority": "High",
            "status": 3,
            "assignee": "bob",
            "reporter": {"displayName": 7, "name": "alice"},
            "created": 1700000000,
        },
    }

    snapshot = snapshot_from_jira_issue(issue)

    assert snapshot.summary == "No summary"
    assert snapshot.description == "No description provided"
    assert snapshot.priority == "Unknown"
    assert snapshot.status == "Unknown"
    assert snapshot.assignee is None
    assert snapshot.reporter == "alice"
    assert isinstance(snapshot.created, str)


@pytest.mark.parametrize("fields", ["High", ["summary"], None])
def test_snapshot_from_issue_tolerates_non_object_fields(fields):
    snapshot = snapshot_from_jira_issue({"key": "SHOP-16", "fields": fields})

    assert snapshot.key == "SHOP-16"
    assert snapshot.summary == "No summary"


def test_extract_adf_text_skips_non_object_nodes():
    document = {"content": [{"type": "paragraph", "content": [{"type": "text", "text": "Kept"}, "dropped", 5]}]}

    assert extract_adf_text(document) == "Kept"
