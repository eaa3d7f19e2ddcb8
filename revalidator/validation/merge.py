from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Sequence

from .fields import InvalidValidationInput, ordered_fields
from .models import MAX_FIELD_SCORE, MIN_FIELD_SCORE, FieldValidationResult


def merge_field_results(
    previous: Sequence[FieldValidationResult],
    fresh: Sequence[FieldValidationResult],
    changed: Iterable[str],
) -> list[FieldValidationResult]:
    """Combine previous and freshly computed field results.

    Every field name present in either input is considered once. Changed fields take
    the fresh result and are dropped when no fresh result exists for them; all other
    fields keep the previous result. Output follows the canonical field order.
    """

    changed_set = set(changed)
    previous_by_field = {result.field: result for result in previous}
    fresh_by_field = {result.field: result for result in fresh}

    merged: list[FieldValidationResult] = []
    for name in ordered_fields([*previous_by_field, *fresh_by_field]):
        source = fresh_by_field if name in changed_set else previous_by_field
        result = source.get(name)
        if result is not None:
            merged.append(result)
    return merged


class RoundingMode(str, Enum):
    """Rounding applied to the mean field score."""

    HALF_UP = "half_up"
    FLOOR = "floor"


@dataclass(slots=True)
class AggregateScore:
    score: int
    is_valid: bool


@dataclass(frozen=True, slots=True)
class ScoringPolicy:
    """Explicit aggregate scoring rules for a ticket's field results."""

    rounding: RoundingMode = RoundingMode.HALF_UP
    min_valid_score: int = 7

    def __post_init__(self) -> None:
        if not MIN_FIELD_SCORE <= self.min_valid_score <= MAX_FIELD_SCORE:
            raise ValueError(
                f"min_valid_score must be within {MIN_FIELD_SCORE}..{MAX_FIELD_SCORE}"
            )

    def round_mean(self, scores: Sequence[int]) -> int:
        mean = Decimal(sum(scores)) / Decimal(len(scores))
        if self.rounding is RoundingMode.FLOOR:
            return math.floor(mean)
        return int(mean.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def aggregate(self, results: Sequence[FieldValidationResult]) -> AggregateScore:
        if not results:
            raise InvalidValidationInput("Cannot aggregate an empty set of field results")
        score = self.round_mean([result.score for result in results])
        is_valid = all(result.is_valid for result in results) and score >= self.min_valid_score
        return AggregateScore(score=score, is_valid=is_valid)
