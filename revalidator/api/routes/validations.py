from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from revalidator.dependencies.validation import (
    AdminUser,
    EditorUser,
    ViewerUser,
    get_revalidation_service,
)
from revalidator.validation.fields import InvalidValidationInput
from revalidator.validation.jira import snapshot_from_jira_issue
from revalidator.validation.models import TicketSnapshot, ValidationHistoryEntry, ValidationKind
from revalidator.validation.repository import CacheStoreError
from revalidator.validation.service import BatchItemResult, RevalidationService

router = APIRouter(prefix="/validations", tags=["validations"])


class TicketPayload(BaseModel):
    key: str = Field(..., min_length=1, max_length=255)
    summary: str
    description: str
    priority: str
    status: str
    reporter: str
    assignee: str | None = None
    created: str | None = None

    def to_snapshot(self) -> TicketSnapshot:
        return TicketSnapshot(**self.model_dump())


class _RulesPayload(BaseModel):
    validation_rules: str = Field(..., min_length=1)
    product_requirements: str | None = None

    @field_validator("validation_rules")
    @classmethod
    def _rules_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("validation_rules must not be blank")
        return value


class ValidateTicketsRequest(_RulesPayload):
    tickets: list[TicketPayload] = Field(..., min_length=1)


class ValidateJiraIssuesRequest(_RulesPayload):
    issues: list[dict[str, Any]] = Field(..., min_length=1)


class FieldResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field: str
    score: int
    is_valid: bool
    issues: list[str]
    suggestions: list[str]
    last_validated: datetime


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    summary: str
    description: str
    priority: str
    status: str
    reporter: str
    assignee: str | None
    created: str | None


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticket_key: str
    snapshot: SnapshotResponse
    field_results: list[FieldResultResponse]
    overall_score: int
    is_valid: bool
    timestamp: datetime
    revision: int


class TicketValidationResponse(BaseModel):
    ticket_key: str
    validation_type: ValidationKind | None = None
    changed_fields: list[str] = Field(default_factory=list)
    reused_fields: list[str] = Field(default_factory=list)
    entry: HistoryEntryResponse | None = None
    error: str | None = None
    error_type: str | None = None


class ClearHistoryResponse(BaseModel):
    removed: int


RevalidationServiceDep = Annotated[RevalidationService, Depends(get_revalidation_service)]


def _to_entry_response(entry: ValidationHistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse.model_validate(entry)


def _to_item_response(result: BatchItemResult) -> TicketValidationResponse:
    if result.outcome is None:
        return TicketValidationResponse(
            ticket_key=result.ticket_key,
            error=str(result.error),
            error_type=type(result.error).__name__,
        )
    outcome = result.outcome
    return TicketValidationResponse(
        ticket_key=result.ticket_key,
        validation_type=outcome.kind,
        changed_fields=list(outcome.changed_fields),
        reused_fields=list(outcome.reused_fields),
        entry=_to_entry_response(outcome.entry),
    )


async def _revalidate(
    service: RevalidationService,
    snapshots: list[TicketSnapshot],
    payload: _RulesPayload,
) -> list[TicketValidationResponse]:
    results = await service.revalidate_many(
        snapshots,
        rules=payload.validation_rules,
        product_context=payload.product_requirements,
    )
    return [_to_item_response(result) for result in results]


@router.post("", response_model=list[TicketValidationResponse])
async def validate_tickets(
    payload: ValidateTicketsRequest,
    service: RevalidationServiceDep,
    _: EditorUser,
) -> list[TicketValidationResponse]:
    try:
        snapshots = [ticket.to_snapshot() for ticket in payload.tickets]
    except InvalidValidationInput as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return await _revalidate(service, snapshots, payload)


@router.post("/jira", response_model=list[TicketValidationResponse])
async def validate_jira_issues(
    payload: ValidateJiraIssuesRequest,
    service: RevalidationServiceDep,
    _: EditorUser,
) -> list[TicketValidationResponse]:
    try:
        snapshots = [snapshot_from_jira_issue(issue) for issue in payload.issues]
    except InvalidValidationInput as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return await _revalidate(service, snapshots, payload)


@router.get("", response_model=list[HistoryEntryResponse])
async def list_history(service: RevalidationServiceDep, _: ViewerUser) -> list[HistoryEntryResponse]:
    try:
        entries = await service.list_history()
    except CacheStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return [_to_entry_response(entry) for entry in entries]


@router.get("/{ticket_key}", response_model=HistoryEntryResponse)
async def get_history(ticket_key: str, service: RevalidationServiceDep, _: ViewerUser) -> HistoryEntryResponse:
    try:
        entry = await service.get_history(ticket_key)
    except CacheStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No validation history for {ticket_key}")
    return _to_entry_response(entry)


@router.delete("", response_model=ClearHistoryResponse, status_code=status.HTTP_200_OK)
async def clear_history(service: RevalidationServiceDep, _: AdminUser) -> ClearHistoryResponse:
    try:
        removed = await service.clear_history()
    except CacheStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ClearHistoryResponse(removed=removed)
