"""
Student Model - Ability estimation and passing probability.

Features:
    - Recency-weighted ability estimate (theta) over the response history
    - Standard error shrinking with the number of responses
    - 95% confidence interval around theta
    - Evidence-blended, clamped probability of passing a full-length exam

All functions here are pure: the same response history always gives the
same numbers, so they can be recomputed from scratch after every answer.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .item_bank import Difficulty


# Passing standard sits at theta = 0
PASSING_STANDARD = 0.0
STEEPNESS = 1.5
REFERENCE_EXAM_LENGTH = 75  # responses needed for full confidence
MIN_PROBABILITY = 0.05
MAX_PROBABILITY = 0.95
Z_95 = 1.96


@dataclass(frozen=True)
class Response:
    """Record of one answered item. Only `flagged` is ever toggled afterwards."""
    item_id: str
    chosen_option_index: int
    is_correct: bool
    difficulty: Difficulty
    category: str
    subcategory: str = ""
    time_spent_seconds: int = 0
    flagged: bool = False

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "chosen_option_index": self.chosen_option_index,
            "is_correct": self.is_correct,
            "difficulty": self.difficulty.value,
            "category": self.category,
            "subcategory": self.subcategory,
            "time_spent_seconds": self.time_spent_seconds,
            "flagged": self.flagged,
        }


@dataclass(frozen=True)
class AbilityEstimate:
    theta: float = 0.0
    standard_error: float = 1.0

    def to_dict(self) -> dict:
        return {"theta": self.theta, "standard_error": self.standard_error}


# ==================== Ability Estimation ====================

def standard_error(response_count: int) -> float:
    """SE = 1 / sqrt(n), with n floored at 1 so an empty history reads SE = 1."""
    return 1.0 / math.sqrt(max(1, response_count))


def estimate_ability(responses: Sequence[Response]) -> AbilityEstimate:
    """
    Estimate ability from the ordered response history.

    The k-th response (1-indexed) contributes with weight 1/sqrt(k):
        correct:   +(1 + d) * w
        incorrect: -(1 - d) * w
    where d is the item's difficulty weight (easy -1, medium 0, hard +1).
    The weighted sum is averaged over the number of responses.

    No responses gives the neutral start: theta 0, SE 1.
    """
    if not responses:
        return AbilityEstimate(theta=0.0, standard_error=1.0)

    total = 0.0
    for k, response in enumerate(responses, start=1):
        d = response.difficulty.weight
        weight = 1.0 / math.sqrt(k)
        if response.is_correct:
            total += (1 + d) * weight
        else:
            total -= (1 - d) * weight

    n = len(responses)
    return AbilityEstimate(theta=total / n, standard_error=standard_error(n))


# ==================== Passing Probability ====================

def evidence_weight(response_count: int) -> float:
    """Share of a full-length exam's evidence collected so far, capped at 1."""
    return min(max(response_count, 0) / REFERENCE_EXAM_LENGTH, 1.0)


def pass_probability(theta: float, response_count: int) -> float:
    """
    Probability of passing a full-length exam, kept inside [0.05, 0.95].

    A logistic curve around the passing standard is blended toward 0.5 in
    proportion to how much evidence has accumulated.
    """
    raw = _logistic(STEEPNESS * (theta - PASSING_STANDARD))
    confidence = evidence_weight(response_count)
    probability = 0.5 + (raw - 0.5) * confidence
    return max(MIN_PROBABILITY, min(MAX_PROBABILITY, probability))


def confidence_interval(theta: float, response_count: int) -> Tuple[float, float]:
    """95% interval around theta."""
    margin = Z_95 * standard_error(response_count)
    return (theta - margin, theta + margin)


def is_passing(theta: float, passing_standard: Optional[float] = None) -> bool:
    standard = PASSING_STANDARD if passing_standard is None else passing_standard
    return theta >= standard


def _logistic(x: float) -> float:
    # Split on sign so exp() never overflows for extreme thetas
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)
