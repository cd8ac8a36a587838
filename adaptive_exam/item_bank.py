"""
Item Bank - In-memory catalog of exam items with a category taxonomy.

Features:
    - Items loaded from JSON files (one file per exam, any number of files)
    - Category hierarchy (all → category → subcategory) as a directed tree
    - Candidate queries by category set, difficulty band and excluded ids

Gateway contract (anything the engine is given as a bank must provide it):
    fetch_candidates(categories, difficulty, exclude_ids) -> List[Item]
    expand_categories(names) -> Set of category selectors fetch_candidates accepts

The bank never changes after loading, so concurrent reads need no locking.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"

# (category, subcategory)
Leaf = Tuple[str, str]


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def weight(self) -> int:
        """Numeric position of the band: easy=-1, medium=0, hard=+1."""
        return _DIFFICULTY_WEIGHTS[self]


_DIFFICULTY_WEIGHTS = {Difficulty.EASY: -1, Difficulty.MEDIUM: 0, Difficulty.HARD: 1}


@dataclass(frozen=True)
class Item:
    """A single multiple-choice exam item."""
    id: str
    category: str
    subcategory: str
    difficulty: Difficulty
    options: Tuple[str, ...]
    correct_option_index: int
    stem: str = ""
    rationale: str = ""

    @classmethod
    def from_dict(cls, data: dict, category: Optional[str] = None,
                  subcategory: Optional[str] = None) -> "Item":
        options = tuple(data["options"])
        correct = int(data["correct_option_index"])
        if not 0 <= correct < len(options):
            raise ValueError(f"Item {data['id']}: correct option {correct} out of range")
        return cls(
            id=str(data["id"]),
            category=data.get("category", category),
            subcategory=data.get("subcategory", subcategory) or data.get("category", category),
            difficulty=Difficulty(data["difficulty"]),
            options=options,
            correct_option_index=correct,
            stem=data.get("stem", ""),
            rationale=data.get("rationale", ""),
        )

    def to_public_dict(self) -> dict:
        """Caller-facing view; never includes the answer key."""
        return {
            "id": self.id,
            "category": self.category,
            "subcategory": self.subcategory,
            "difficulty": self.difficulty.value,
            "stem": self.stem,
            "options": list(self.options),
        }


class ItemBank:
    """
    Read-only item catalog.

    Structure:
        all
        └── Category (e.g., "Physiological Integrity")
            └── (Category, Subcategory) leaf (e.g., "Pharmacological and Parenteral Therapies")
                └── items

    Leaves are keyed by the (category, subcategory) pair, so two categories
    may use the same subcategory name without sharing items. Items filed
    directly under a category live in its (category, category) leaf.
    """

    def __init__(self, data_dir: Optional[str] = "data/items", items: Optional[Iterable[Item]] = None):
        """Load items from data_dir, or take them directly from `items`."""
        self.data_dir = Path(data_dir) if data_dir else None
        self.taxonomy = nx.DiGraph()
        self.taxonomy.add_node(ALL_CATEGORIES, level="root")
        self.items: Dict[str, Item] = {}
        self._leaves_by_name: Dict[str, Set[Leaf]] = {}

        if items is not None:
            for item in items:
                self._add_item(item)
        else:
            self._load_all_items()

    def _load_all_items(self):
        """Load items from every JSON file in the data directory."""
        if not self.data_dir or not self.data_dir.exists():
            logger.warning(f"Item bank directory {self.data_dir} not found; bank is empty")
            return

        for bank_file in sorted(self.data_dir.glob("*.json")):
            with open(bank_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._load_bank(data)

        logger.info(f"Loaded {len(self.items)} items from {self.data_dir}")

    def _load_bank(self, data: dict):
        """
        Load one bank file. Items are nested under their category and
        subcategory so the file mirrors the taxonomy.
        """
        for category in data.get("categories", []):
            for subcategory in category.get("subcategories", []):
                for raw in subcategory.get("items", []):
                    self._add_item(Item.from_dict(raw, category["name"], subcategory["name"]))

    def _add_item(self, item: Item):
        if item.id in self.items:
            raise ValueError(f"Duplicate item id: {item.id}")
        self.items[item.id] = item

        # Build the taxonomy edges
        leaf = (item.category, item.subcategory)
        self.taxonomy.add_node(item.category, level="category")
        self.taxonomy.add_edge(ALL_CATEGORIES, item.category)
        self.taxonomy.add_node(leaf, level="subcategory")
        self.taxonomy.add_edge(item.category, leaf)
        self._leaves_by_name.setdefault(item.subcategory, set()).add(leaf)

    # ==================== Taxonomy ====================

    def get_categories(self) -> List[str]:
        """Top-level category names, sorted."""
        return sorted(self.taxonomy.successors(ALL_CATEGORIES))

    def get_subcategories(self, category: str) -> List[str]:
        """Named subcategories of a category (its own direct leaf excluded)."""
        if category == ALL_CATEGORIES or category not in self.taxonomy:
            return []
        return sorted(sub for _, sub in self.taxonomy.successors(category) if sub != category)

    def expand_categories(self, names: Iterable[str]) -> Set[Leaf]:
        """
        Resolve requested names into the (category, subcategory) leaves they cover.

        "all" expands to every leaf and a category to all of its leaves. A
        subcategory name covers that subcategory in every category using it;
        a category name wins over a subcategory of the same name. Unknown
        names raise ValueError.
        """
        leaves: Set[Leaf] = set()
        for name in names:
            if isinstance(name, str) and name in self.taxonomy:
                leaves.update(n for n in nx.descendants(self.taxonomy, name) if isinstance(n, tuple))
            elif name in self._leaves_by_name:
                leaves.update(self._leaves_by_name[name])
            else:
                raise ValueError(f"Unknown category: {name}")
        return leaves

    # ==================== Items ====================

    def get_item(self, item_id: str) -> Optional[Item]:
        return self.items.get(item_id)

    def fetch_candidates(self, categories: Iterable, difficulty: Difficulty,
                         exclude_ids: Iterable[str]) -> List[Item]:
        """
        Items in the given categories and band that haven't been asked yet.

        `categories` holds (category, subcategory) leaves from
        expand_categories, or plain category names meaning the whole category.
        """
        wanted = set(categories)
        excluded = set(exclude_ids)
        return [
            item for item in self.items.values()
            if item.difficulty == difficulty
            and item.id not in excluded
            and ((item.category, item.subcategory) in wanted or item.category in wanted)
        ]

    def get_stats(self) -> dict:
        """Item counts per category and difficulty."""
        per_category: Dict[str, int] = {}
        per_difficulty = {d.value: 0 for d in Difficulty}
        for item in self.items.values():
            per_category[item.category] = per_category.get(item.category, 0) + 1
            per_difficulty[item.difficulty.value] += 1
        return {
            "total_items": len(self.items),
            "categories": per_category,
            "difficulties": per_difficulty,
        }
