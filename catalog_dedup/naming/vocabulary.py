"""
Vocabulary - Loadable word lists used by normalization and asset linking.

The production lists live in catalog_dedup/data/*.json so the engine logic
can be exercised against small synthetic vocabularies in tests.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data")
VOCABULARY_FILE = os.path.join(DATA_DIR, "vocabulary.json")
CATEGORIES_FILE = os.path.join(DATA_DIR, "categories.json")


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


@dataclass(frozen=True)
class Vocabulary:
    """Stopwords for the normalizer and prefix/suffix lists for variants."""
    stop_phrases: Tuple[str, ...] = ()
    stopwords: Tuple[str, ...] = ()
    variant_prefixes: Tuple[str, ...] = ()
    variant_suffixes: Tuple[str, ...] = ()
    fold_plurals: bool = False
    plural_exempt_endings: Tuple[str, ...] = ()
    min_variant_length: int = 3

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vocabulary":
        return cls(
            stop_phrases=tuple(p.lower() for p in data.get("normalizer_stop_phrases", [])),
            stopwords=tuple(w.lower() for w in data.get("normalizer_stopwords", [])),
            variant_prefixes=tuple(data.get("variant_prefixes", [])),
            variant_suffixes=tuple(data.get("variant_suffixes", [])),
            fold_plurals=bool(data.get("fold_plurals", False)),
            plural_exempt_endings=tuple(data.get("plural_exempt_endings", [])),
            min_variant_length=int(data.get("min_variant_length", 3)),
        )

    @classmethod
    def from_file(cls, path: str) -> "Vocabulary":
        return cls.from_dict(_load_json(path))


@dataclass(frozen=True)
class CategoryTable:
    """Maps mapping-file categories to catalog category and body part."""
    category_map: Dict[str, str] = field(default_factory=dict)
    body_part_map: Dict[str, str] = field(default_factory=dict)
    default_category: str = "Strength"

    def category_for(self, raw: Optional[str]) -> str:
        return self.category_map.get((raw or "").lower(), self.default_category)

    def body_part_for(self, raw: Optional[str]) -> Optional[str]:
        return self.body_part_map.get((raw or "").lower())

    @classmethod
    def from_file(cls, path: str) -> "CategoryTable":
        data = _load_json(path)
        return cls(
            category_map={k.lower(): v for k, v in data.get("category_map", {}).items()},
            body_part_map={k.lower(): v for k, v in data.get("body_part_map", {}).items()},
            default_category=data.get("default_category", "Strength"),
        )


@lru_cache(maxsize=1)
def default_vocabulary() -> Vocabulary:
    """Packaged vocabulary (cached)."""
    return Vocabulary.from_file(VOCABULARY_FILE)


@lru_cache(maxsize=1)
def default_categories() -> CategoryTable:
    return CategoryTable.from_file(CATEGORIES_FILE)


__all__ = [
    "Vocabulary",
    "CategoryTable",
    "default_vocabulary",
    "default_categories",
]
