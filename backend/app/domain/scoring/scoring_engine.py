"""
Weighted checklist scoring.

One implementation shared by the live preview endpoint and the submission
pipeline, so a previewed score and the persisted score cannot diverge.

Given ``(coefficient, answer)`` pairs:
    applicable = sum of coefficients whose answer is not NA
    earned     = sum of coefficients whose answer is Yes
    percentage = earned / applicable * 100, or 0 when applicable is 0

Raw totals are kept unrounded; only the percentage is rounded (half-up,
2 decimal places) for persistence.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple, Union

from backend.app.models.enums import AnswerValue

AnswerLike = Union[AnswerValue, str]

_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class ScoreResult:
    total_coefficient: float
    applicable_coefficient: float
    earned: float
    percentage: float

    @property
    def rounded_percentage(self) -> float:
        return round_percentage(self.percentage)


def _as_answer(answer: AnswerLike) -> AnswerValue:
    try:
        return AnswerValue(answer)
    except ValueError:
        raise ValueError(f"Unknown answer {answer!r}; expected Yes, No or NA") from None


def _as_coefficient(coefficient) -> float:
    value = float(coefficient)
    if not (math.isfinite(value) and value > 0):
        raise ValueError(f"Coefficient must be a positive number, got {coefficient!r}")
    return value


def earned_value(coefficient, answer: AnswerLike) -> float:
    """Points earned by one answer: its coefficient for Yes, 0 otherwise."""
    value = _as_coefficient(coefficient)
    return value if _as_answer(answer) == AnswerValue.YES else 0.0


def round_percentage(value: float) -> float:
    """Round half-up to 2 decimal places."""
    return float(Decimal(repr(float(value))).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def score(items: Iterable[Tuple[float, AnswerLike]]) -> ScoreResult:
    """
    Score an ordered list of ``(coefficient, answer)`` pairs.

    Raises:
        ValueError: non-positive coefficient or unknown answer
    """
    total = 0.0
    applicable = 0.0
    earned = 0.0

    for coefficient, answer in items:
        value = _as_coefficient(coefficient)
        answer = _as_answer(answer)
        total += value
        if answer == AnswerValue.NA:
            continue
        applicable += value
        if answer == AnswerValue.YES:
            earned += value

    percentage = earned * 100 / applicable if applicable > 0 else 0.0

    return ScoreResult(
        total_coefficient=total,
        applicable_coefficient=applicable,
        earned=earned,
        percentage=percentage,
    )
