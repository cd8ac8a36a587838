"""Shared fixtures: small in-memory banks, a controllable clock, session builders."""

import random
import time
from pathlib import Path

import pytest

from adaptive_exam import (
    BankUnavailableError,
    Difficulty,
    Item,
    ItemBank,
    ItemSelector,
    SessionMachine,
    Settings,
    TestConfiguration,
)

DATA_DIR = Path(__file__).resolve().parent.parent / "data" / "items"
CATEGORIES = ("Pharmacology", "Safety", "Psychosocial")


def make_item(item_id, category="Pharmacology", difficulty="medium", subcategory=None,
              correct=0, n_options=4):
    return Item(
        id=item_id,
        category=category,
        subcategory=subcategory or category,
        difficulty=Difficulty(difficulty),
        options=tuple(f"Option {i}" for i in range(n_options)),
        correct_option_index=correct,
    )


def build_bank(per_band=5, categories=CATEGORIES) -> ItemBank:
    items = [
        make_item(f"{category[:3].lower()}-{band.value}-{i}", category, band.value)
        for category in categories
        for band in Difficulty
        for i in range(per_band)
    ]
    return ItemBank(data_dir=None, items=items)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FlakyGateway:
    """Wraps a bank; raises BankUnavailableError while `down` is set."""

    def __init__(self, bank):
        self.bank = bank
        self.down = False
        self.calls = 0

    def expand_categories(self, names):
        return self.bank.expand_categories(names)

    def fetch_candidates(self, categories, difficulty, exclude_ids):
        self.calls += 1
        if self.down:
            raise BankUnavailableError("bank offline")
        return self.bank.fetch_candidates(categories, difficulty, exclude_ids)


class HookGateway:
    """Wraps a bank; runs `on_fetch` (once armed) before every fetch, then sleeps `delay`."""

    def __init__(self, bank, delay=0.0):
        self.bank = bank
        self.delay = delay
        self.on_fetch = None

    def expand_categories(self, names):
        return self.bank.expand_categories(names)

    def fetch_candidates(self, categories, difficulty, exclude_ids):
        if self.on_fetch is not None:
            hook, self.on_fetch = self.on_fetch, None
            hook()
        if self.delay:
            time.sleep(self.delay)
        return self.bank.fetch_candidates(categories, difficulty, exclude_ids)


class EmptyGateway:
    """Knows the categories but never has an item to offer."""

    def expand_categories(self, names):
        return set(CATEGORIES)

    def fetch_candidates(self, categories, difficulty, exclude_ids):
        return []


def answer(machine, correct=True):
    """Answer the pending item right or wrong; returns the AnswerOutcome."""
    item = machine._presented[-1]
    index = item.correct_option_index
    if not correct:
        index = (index + 1) % len(item.options)
    return machine.submit_answer(index)


@pytest.fixture
def bank():
    return build_bank()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_machine(bank, clock):
    """Build (not start) a SessionMachine over the default bank."""
    def _make(config=None, gateway=None, seed=7, settings=None):
        return SessionMachine(
            config or TestConfiguration(item_count=10),
            ItemSelector(gateway or bank, rng=random.Random(seed)),
            settings=settings or Settings(),
            clock=clock,
            session_id="test-session",
        )
    return _make
