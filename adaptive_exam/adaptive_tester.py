"""
Adaptive Tester - Next-item selection for computerized adaptive testing.

Features:
    - Difficulty band chosen from the current ability estimate
    - Category diversification (avoid repeating the last category)
    - Fallback to any band before giving up
    - Injectable random source for reproducible selection
"""

import logging
import random
from typing import Iterable, List, Optional

from .errors import ExhaustedBankError
from .item_bank import ALL_CATEGORIES, Difficulty, Item

logger = logging.getLogger(__name__)

# Theta cutoffs for the difficulty bands
EASY_CUTOFF = -0.5
HARD_CUTOFF = 0.5


def target_difficulty(theta: float) -> Difficulty:
    """
    Map ability to a band:
        theta < -0.5         -> easy
        -0.5 <= theta <= 0.5 -> medium
        theta > 0.5          -> hard
    """
    if theta < EASY_CUTOFF:
        return Difficulty.EASY
    if theta > HARD_CUTOFF:
        return Difficulty.HARD
    return Difficulty.MEDIUM


class ItemSelector:
    """
    Picks the next item from the item bank gateway.

    The gateway is only read from; failures it raises (BankUnavailableError)
    pass straight through to the caller.
    """

    def __init__(self, gateway, rng: Optional[random.Random] = None):
        self.gateway = gateway
        self.rng = rng or random.Random()

    def select_next(self, theta: float, asked_ids: Iterable[str],
                    last_category: Optional[str] = None,
                    categories: Optional[Iterable[str]] = None) -> Item:
        """
        Select the next item.

        Order of preference:
            1. In-band item from a different category than the last one
            2. In-band item from any category
            3. Any unasked item, whatever its band

        With no categories the whole bank is in play. Raises
        ExhaustedBankError when nothing is left.
        """
        asked = set(asked_ids)
        categories = set(categories or ())
        if not categories:
            categories = set(self.gateway.expand_categories([ALL_CATEGORIES]))
        band = target_difficulty(theta)

        in_band = self._candidates(categories, band, asked)
        if in_band:
            diversified = [item for item in in_band if item.category != last_category]
            return self._pick(diversified or in_band)

        # Band exhausted: widen to the other bands
        fallback: List[Item] = []
        for other in Difficulty:
            if other != band:
                fallback.extend(self._candidates(categories, other, asked))

        if not fallback:
            raise ExhaustedBankError(f"No unasked items left after {len(asked)} asked")

        logger.warning(f"No unasked {band.value} items left; falling back to other bands")
        return self._pick(fallback)

    def _candidates(self, categories, band: Difficulty, asked) -> List[Item]:
        # Re-filter in case a gateway ignores exclude_ids; order by id so the
        # seeded rng sees the same pool every run.
        items = self.gateway.fetch_candidates(categories, band, asked)
        return sorted((item for item in items if item.id not in asked), key=lambda item: item.id)

    def _pick(self, pool: List[Item]) -> Item:
        return self.rng.choice(pool)
