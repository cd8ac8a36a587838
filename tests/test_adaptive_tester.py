"""Tests for adaptive_tester.py - next-item selection."""

import random

import pytest

from adaptive_exam import (
    BankUnavailableError,
    Difficulty,
    ExhaustedBankError,
    ItemBank,
    ItemSelector,
    target_difficulty,
)

from conftest import CATEGORIES, build_bank, make_item


@pytest.mark.parametrize("theta,band", [
    (-3.0, Difficulty.EASY),
    (-0.51, Difficulty.EASY),
    (-0.5, Difficulty.MEDIUM),
    (0.0, Difficulty.MEDIUM),
    (0.5, Difficulty.MEDIUM),
    (0.51, Difficulty.HARD),
    (3.0, Difficulty.HARD),
])
def test_target_difficulty(theta, band):
    assert target_difficulty(theta) == band


def test_selects_in_band(bank):
    selector = ItemSelector(bank, rng=random.Random(1))
    for theta, band in [(-1.0, Difficulty.EASY), (0.0, Difficulty.MEDIUM), (1.0, Difficulty.HARD)]:
        item = selector.select_next(theta, [], categories=CATEGORIES)
        assert item.difficulty == band


def test_prefers_a_different_category(bank):
    for seed in range(25):
        selector = ItemSelector(bank, rng=random.Random(seed))
        item = selector.select_next(0.0, [], last_category="Pharmacology", categories=CATEGORIES)
        assert item.category != "Pharmacology"


def test_falls_back_to_same_category_in_band():
    bank = ItemBank(data_dir=None, items=[
        make_item("p-hard", "Pharmacology", "hard"),
        make_item("s-easy", "Safety", "easy"),
    ])
    selector = ItemSelector(bank, rng=random.Random(3))
    item = selector.select_next(1.0, [], last_category="Pharmacology", categories={"Pharmacology", "Safety"})
    assert item.id == "p-hard"


def test_falls_back_to_other_bands():
    bank = ItemBank(data_dir=None, items=[make_item("e1", difficulty="easy"), make_item("e2", difficulty="easy")])
    selector = ItemSelector(bank, rng=random.Random(0))
    item = selector.select_next(2.0, ["e1"], categories={"Pharmacology"})
    assert item.id == "e2"


def test_never_repeats_asked_items(bank):
    selector = ItemSelector(bank, rng=random.Random(11))
    asked = []
    for _ in range(len(bank.items)):
        item = selector.select_next(0.0, asked, categories=CATEGORIES)
        assert item.id not in asked
        asked.append(item.id)

    with pytest.raises(ExhaustedBankError):
        selector.select_next(0.0, asked, categories=CATEGORIES)


def test_respects_category_filter(bank):
    selector = ItemSelector(bank, rng=random.Random(5))
    for _ in range(10):
        assert selector.select_next(0.0, [], categories={"Safety"}).category == "Safety"


def test_same_seed_same_sequence():
    bank = build_bank(per_band=10)

    def run(seed):
        selector = ItemSelector(bank, rng=random.Random(seed))
        asked = []
        for theta in (0.0, 0.7, -0.8, 0.2, 1.5, -2.0):
            asked.append(selector.select_next(theta, asked, categories=CATEGORIES).id)
        return asked

    assert run(42) == run(42)


def test_gateway_failures_propagate():
    class DownGateway:
        def fetch_candidates(self, categories, difficulty, exclude_ids):
            raise BankUnavailableError("offline")

    selector = ItemSelector(DownGateway())
    with pytest.raises(BankUnavailableError):
        selector.select_next(0.0, [], categories=CATEGORIES)


def test_filters_asked_even_if_gateway_does_not():
    class LeakyGateway:
        def fetch_candidates(self, categories, difficulty, exclude_ids):
            return [make_item("a"), make_item("b")]

    selector = ItemSelector(LeakyGateway(), rng=random.Random(0))
    assert selector.select_next(0.0, ["a"], categories={"Pharmacology"}).id == "b"


def test_no_category_filter_means_whole_bank(bank):
    selector = ItemSelector(bank, rng=random.Random(2))
    assert selector.select_next(0.0, set(), None).difficulty == Difficulty.MEDIUM

    asked = []
    for _ in range(len(bank.items)):
        asked.append(selector.select_next(0.0, asked).id)
    assert set(asked) == set(bank.items)
