"""
Performance Tracker - Correct/total tallies per category.

Used three ways by a session: per category, per subcategory and per
difficulty band. Counts only ever go up.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

STRENGTH_THRESHOLD = 75  # percent
WEAKNESS_THRESHOLD = 60


@dataclass
class CategoryPerformance:
    correct: int = 0
    total: int = 0

    @property
    def percentage(self) -> int:
        return percentage(self.correct, self.total)


def percentage(correct: int, total: int) -> int:
    """Whole-number percentage, rounding halves up (12.5 -> 13)."""
    return int(math.floor(100 * correct / total + 0.5))


class PerformanceTracker:
    """Incremental correct/total aggregator keyed by category name."""

    def __init__(self):
        self._stats: Dict[str, CategoryPerformance] = {}

    def record(self, category: str, is_correct: bool):
        stats = self._stats.setdefault(category, CategoryPerformance())
        stats.total += 1
        if is_correct:
            stats.correct += 1

    def get(self, category: str) -> CategoryPerformance:
        """Copy of the counts for one category (zeros if never seen)."""
        stats = self._stats.get(category, CategoryPerformance())
        return CategoryPerformance(correct=stats.correct, total=stats.total)

    def snapshot(self) -> Dict[str, dict]:
        """
        Plain-data view: {category: {correct, total, percentage}}.

        Categories with no answers are left out, so there is never a
        division by zero.
        """
        return {
            name: {"correct": s.correct, "total": s.total, "percentage": s.percentage}
            for name, s in sorted(self._stats.items())
            if s.total > 0
        }

    def strengths_and_weaknesses(self) -> Tuple[List[str], List[str]]:
        """Categories at >= 75% and below 60%."""
        strengths, weaknesses = [], []
        for name, row in self.snapshot().items():
            if row["percentage"] >= STRENGTH_THRESHOLD:
                strengths.append(name)
            elif row["percentage"] < WEAKNESS_THRESHOLD:
                weaknesses.append(name)
        return strengths, weaknesses

    def __len__(self):
        return len(self._stats)
