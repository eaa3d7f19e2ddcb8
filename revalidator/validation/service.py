from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from revalidator.metrics import MetricsRegistry, metrics_registry as default_metrics_registry
from revalidator.metrics.definitions import (
    FIELD_VALIDATION_FAILURES_TOTAL,
    FIELD_VALIDATIONS_TOTAL,
    HISTORY_WRITE_CONFLICTS_TOTAL,
    REVALIDATION_DURATION_SECONDS,
    REVALIDATION_FAILURES_TOTAL,
    REVALIDATIONS_TOTAL,
)

from .fields import FIELD_ORDER, InvalidValidationInput, changed_fields, field_value, ordered_fields, parse_fields
from .locks import KeyedLock
from .merge import ScoringPolicy, merge_field_results
from .models import (
    FieldValidationResult,
    RevalidationOutcome,
    TicketSnapshot,
    ValidationHistoryEntry,
    ValidationKind,
    utcnow,
)
from .repository import CacheStore, StaleEntryError
from .validator import FieldValidationError, FieldValidationRequest, FieldValidator

logger = logging.getLogger(__name__)


class ConcurrentRevalidationError(RuntimeError):
    """Raised when concurrent writers keep invalidating a ticket's history."""


@dataclass(slots=True)
class BatchItemResult:
    """Per-ticket result of a bulk revalidation."""

    ticket_key: str
    outcome: RevalidationOutcome | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RevalidationService:
    """Incremental ticket validation backed by a per-ticket history cache.

    A ticket without history has every configured field validated. A ticket whose
    snapshot is unchanged is served from history without calling the validator. A
    changed ticket only has its changed fields re-validated; the remaining results
    are reused and the merged record replaces the stored one.

    The read, validate, merge and write cycle is serialized per ticket key in process
    and guarded by a revision compare-and-swap in the store for other processes.
    """

    def __init__(
        self,
        store: CacheStore,
        validator: FieldValidator,
        *,
        fields: Iterable[str] = FIELD_ORDER,
        scoring: ScoringPolicy | None = None,
        max_write_attempts: int = 3,
        concurrency: int = 5,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        if max_write_attempts < 1:
            raise ValueError("max_write_attempts must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._store = store
        self._validator = validator
        self._fields = parse_fields(fields)
        self._scoring = scoring or ScoringPolicy()
        self._max_write_attempts = max_write_attempts
        self._concurrency = concurrency
        self._metrics = metrics or default_metrics_registry
        self._locks = KeyedLock()
        self._inflight: set[asyncio.Task[RevalidationOutcome]] = set()

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields

    @property
    def scoring(self) -> ScoringPolicy:
        return self._scoring

    async def get_history(self, ticket_key: str) -> ValidationHistoryEntry | None:
        return await self._store.get(ticket_key)

    async def list_history(self) -> Sequence[ValidationHistoryEntry]:
        return await self._store.list_entries()

    async def clear_history(self) -> int:
        return await self._store.clear_all()

    async def revalidate(
        self,
        snapshot: TicketSnapshot,
        *,
        rules: str,
        product_context: str | None = None,
    ) -> RevalidationOutcome:
        """Validate ``snapshot``, reusing stored field results where possible.

        Cancelling the caller does not cancel the cycle; it runs to completion so the
        history stays consistent for later requests.
        """

        if not rules or not rules.strip():
            raise InvalidValidationInput("Validation rules must not be empty")
        task = asyncio.ensure_future(self._revalidate_serialized(snapshot, rules, product_context))
        self._inflight.add(task)
        task.add_done_callback(self._forget)
        return await asyncio.shield(task)

    async def revalidate_many(
        self,
        snapshots: Sequence[TicketSnapshot],
        *,
        rules: str,
        product_context: str | None = None,
        concurrency: int | None = None,
    ) -> list[BatchItemResult]:
        """Revalidate tickets concurrently; one ticket's failure does not affect the others."""

        semaphore = asyncio.Semaphore(concurrency or self._concurrency)

        async def run(snapshot: TicketSnapshot) -> BatchItemResult:
            async with semaphore:
                try:
                    outcome = await self.revalidate(snapshot, rules=rules, product_context=product_context)
                except Exception as exc:
                    logger.error("Revalidation of %s failed: %s", snapshot.key, exc)
                    return BatchItemResult(ticket_key=snapshot.key, error=exc)
            return BatchItemResult(ticket_key=snapshot.key, outcome=outcome)

        return list(await asyncio.gather(*(run(snapshot) for snapshot in snapshots)))

    async def wait_for_inflight(self) -> None:
        """Wait until every started revalidation cycle has finished."""

        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    def _forget(self, task: asyncio.Task[RevalidationOutcome]) -> None:
        self._inflight.discard(task)
        if not task.cancelled():
            # Marks the error as retrieved when the awaiting caller has gone away.
            task.exception()

    async def _revalidate_serialized(
        self, snapshot: TicketSnapshot, rules: str, product_context: str | None
    ) -> RevalidationOutcome:
        try:
            with self._metrics.time_distribution(REVALIDATION_DURATION_SECONDS):
                async with self._locks.hold(snapshot.key):
                    outcome = await self._run_cycle(snapshot, rules, product_context)
        except Exception:
            self._metrics.counter(REVALIDATION_FAILURES_TOTAL).inc()
            raise
        self._metrics.counter(REVALIDATIONS_TOTAL).inc(labels={"outcome": outcome.kind.value})
        logger.info(
            "Revalidated %s (%s): score=%d changed=%s reused=%s",
            snapshot.key,
            outcome.kind.value,
            outcome.entry.overall_score,
            list(outcome.changed_fields),
            list(outcome.reused_fields),
        )
        return outcome

    async def _run_cycle(
        self, snapshot: TicketSnapshot, rules: str, product_context: str | None
    ) -> RevalidationOutcome:
        for attempt in range(1, self._max_write_attempts + 1):
            previous = await self._store.get(snapshot.key)

            if previous is None:
                kind = ValidationKind.FULL
                changed: tuple[str, ...] = self._fields
                to_validate = self._fields
            else:
                detected = changed_fields(snapshot, previous.snapshot)
                missing = set(self._fields).difference(previous.fields)
                retired = set(previous.fields).difference(self._fields)
                # Failed evaluations are retried even when the value is unchanged.
                degraded = {
                    result.field
                    for result in previous.field_results
                    if result.is_degraded and result.field in self._fields
                }
                if not detected and not missing and not retired and not degraded:
                    return RevalidationOutcome(
                        entry=previous,
                        kind=ValidationKind.CACHED,
                        changed_fields=(),
                        reused_fields=previous.fields,
                    )
                kind = ValidationKind.PARTIAL
                changed = ordered_fields(detected | missing | degraded)
                to_validate = ordered_fields((detected & set(self._fields)) | missing | degraded)

            fresh = await self._validate_fields(snapshot, to_validate, rules, product_context, previous)
            merged = merge_field_results(
                previous.field_results if previous is not None else [],
                fresh,
                to_validate,
            )
            merged = [result for result in merged if result.field in self._fields]
            aggregate = self._scoring.aggregate(merged)
            entry = ValidationHistoryEntry(
                ticket_key=snapshot.key,
                snapshot=snapshot,
                field_results=merged,
                overall_score=aggregate.score,
                is_valid=aggregate.is_valid,
                timestamp=utcnow(),
            )

            try:
                stored = await self._store.put(
                    entry,
                    expected_revision=previous.revision if previous is not None else None,
                )
            except StaleEntryError:
                self._metrics.counter(HISTORY_WRITE_CONFLICTS_TOTAL).inc()
                logger.warning(
                    "History for %s changed during revalidation (attempt %d/%d)",
                    snapshot.key,
                    attempt,
                    self._max_write_attempts,
                )
                continue

            reused = tuple(name for name in stored.fields if name not in to_validate)
            return RevalidationOutcome(entry=stored, kind=kind, changed_fields=changed, reused_fields=reused)

        raise ConcurrentRevalidationError(
            f"Gave up revalidating {snapshot.key} after {self._max_write_attempts} conflicting writes"
        )

    async def _validate_fields(
        self,
        snapshot: TicketSnapshot,
        names: Sequence[str],
        rules: str,
        product_context: str | None,
        previous: ValidationHistoryEntry | None,
    ) -> list[FieldValidationResult]:
        requests = [
            FieldValidationRequest(
                ticket_key=snapshot.key,
                field=name,
                value=field_value(snapshot, name),
                rules=rules,
                product_context=product_context,
                previous=previous.result_for(name) if previous is not None else None,
            )
            for name in names
        ]
        return list(await asyncio.gather(*(self._validate_one(request) for request in requests)))

    async def _validate_one(self, request: FieldValidationRequest) -> FieldValidationResult:
        labels = {"field": request.field}
        self._metrics.counter(FIELD_VALIDATIONS_TOTAL).inc(labels=labels)
        try:
            result = await self._validator.validate_field(request)
            if not isinstance(result, FieldValidationResult) or result.field != request.field:
                raise FieldValidationError(f"Validator returned an unusable result for '{request.field}'")
        except Exception as exc:
            self._metrics.counter(FIELD_VALIDATION_FAILURES_TOTAL).inc(labels=labels)
            logger.warning("Field validation degraded for %s.%s: %s", request.ticket_key, request.field, exc)
            return FieldValidationResult.degraded(request.field, str(exc) or type(exc).__name__)
        return result
