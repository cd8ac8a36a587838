"""Tests for student_model.py - ability, passing probability, confidence interval."""

import math

import pytest

from adaptive_exam import Difficulty, Response
from adaptive_exam.student_model import (
    AbilityEstimate,
    confidence_interval,
    estimate_ability,
    evidence_weight,
    is_passing,
    pass_probability,
    standard_error,
)


def response(correct, difficulty="medium", item_id="q", flagged=False):
    return Response(
        item_id=item_id,
        chosen_option_index=0,
        is_correct=correct,
        difficulty=Difficulty(difficulty),
        category="Pharmacology",
        flagged=flagged,
    )


# ==================== Ability ====================

def test_no_responses_is_neutral():
    assert estimate_ability([]) == AbilityEstimate(theta=0.0, standard_error=1.0)


def test_single_correct_medium():
    estimate = estimate_ability([response(True, "medium")])
    assert estimate.theta == pytest.approx(1.0)
    assert estimate.standard_error == pytest.approx(1.0)


def test_difficulty_weights():
    # Correct easy and wrong hard both contribute nothing
    assert estimate_ability([response(True, "easy")]).theta == pytest.approx(0.0)
    assert estimate_ability([response(False, "hard")]).theta == pytest.approx(0.0)
    assert estimate_ability([response(True, "hard")]).theta == pytest.approx(2.0)
    assert estimate_ability([response(False, "easy")]).theta == pytest.approx(-2.0)


def test_recency_weighting():
    history = [response(True, "hard"), response(False, "easy")]
    expected = (2.0 - 2.0 / math.sqrt(2)) / 2
    assert estimate_ability(history).theta == pytest.approx(expected)


def test_estimate_is_order_sensitive():
    history = [response(True, "hard"), response(False, "medium"), response(False, "easy")]
    forward = estimate_ability(history)
    backward = estimate_ability(list(reversed(history)))
    assert forward.theta != pytest.approx(backward.theta)


def test_estimate_is_deterministic():
    history = [response(i % 3 != 0, ["easy", "medium", "hard"][i % 3]) for i in range(40)]
    first = estimate_ability(history)
    second = estimate_ability(list(history))
    assert first.theta == second.theta
    assert first.standard_error == second.standard_error


def test_flags_do_not_change_estimate():
    plain = [response(True, "hard"), response(False, "medium")]
    flagged = [response(True, "hard", flagged=True), response(False, "medium", flagged=True)]
    assert estimate_ability(plain) == estimate_ability(flagged)


def test_standard_error_shrinks():
    assert standard_error(0) == 1.0
    assert standard_error(1) == 1.0
    assert standard_error(4) == pytest.approx(0.5)
    assert estimate_ability([response(True)] * 16).standard_error == pytest.approx(0.25)


# ==================== Passing Probability ====================

def test_pass_probability_neutral_points():
    assert pass_probability(0.0, 50) == pytest.approx(0.5)
    # No evidence yet: always the baseline
    assert pass_probability(2.5, 0) == pytest.approx(0.5)
    assert pass_probability(-2.5, 0) == pytest.approx(0.5)


def test_pass_probability_full_evidence():
    expected = 1 / (1 + math.exp(-1.5 * 0.4))
    assert pass_probability(0.4, 75) == pytest.approx(expected)
    assert pass_probability(0.4, 200) == pytest.approx(expected)


def test_pass_probability_is_blended():
    raw = 1 / (1 + math.exp(-1.5))
    assert pass_probability(1.0, 15) == pytest.approx(0.5 + (raw - 0.5) * 0.2)


@pytest.mark.parametrize("theta", [-50.0, -3.0, -0.7, 0.0, 0.3, 3.0, 50.0, 1e6, -1e6])
@pytest.mark.parametrize("count", [0, 1, 10, 74, 75, 76, 500])
def test_pass_probability_bounded(theta, count):
    p = pass_probability(theta, count)
    assert 0.05 <= p <= 0.95


def test_pass_probability_clamps_extremes():
    assert pass_probability(10.0, 75) == pytest.approx(0.95)
    assert pass_probability(-10.0, 75) == pytest.approx(0.05)


def test_evidence_weight_monotonic_and_capped():
    weights = [evidence_weight(n) for n in range(0, 200)]
    assert all(a <= b for a, b in zip(weights, weights[1:]))
    assert max(weights) == 1.0
    assert evidence_weight(75) == 1.0
    assert evidence_weight(0) == 0.0


def test_is_passing_at_standard():
    assert is_passing(0.0)
    assert is_passing(0.01)
    assert not is_passing(-0.01)


# ==================== Confidence Interval ====================

def test_confidence_interval_centered():
    low, high = confidence_interval(0.8, 4)
    assert low == pytest.approx(0.8 - 1.96 * 0.5)
    assert high == pytest.approx(0.8 + 1.96 * 0.5)


def test_confidence_interval_without_responses():
    assert confidence_interval(0.0, 0) == pytest.approx((-1.96, 1.96))


def test_confidence_interval_width_strictly_decreases():
    widths = []
    for n in range(1, 150):
        low, high = confidence_interval(0.25, n)
        widths.append(high - low)
    assert all(a > b for a, b in zip(widths, widths[1:]))
