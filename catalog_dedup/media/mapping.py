"""
Mapping Table - External name/alias mapping file.

Format:
    {"exercises": [
        {"name": "Barbell Back Squat",
         "aliases": ["Back Squat", "High Bar Squat"],
         "source_id": "Barbell_Squat",
         "category": "legs",
         "status": "matched"}
    ]}

Entries with status "no_match" stay in the table (the seeder reports them)
but are never used for lookups.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from catalog_dedup.errors import ValidationError
from catalog_dedup.naming.normalizer import slugify

logger = logging.getLogger(__name__)

NO_MATCH_STATUS = "no_match"


@dataclass
class MappingEntry:
    name: str
    aliases: List[str] = field(default_factory=list)
    source_id: Optional[str] = None
    category: Optional[str] = None
    status: str = "matched"

    @property
    def usable(self) -> bool:
        return self.status != NO_MATCH_STATUS

    @property
    def slug(self) -> str:
        return slugify(self.name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "MappingEntry":
        """
        Raises:
            ValidationError: Entry has no name or a non-list aliases field
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Mapping entry {index} is not an object")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"Mapping entry {index} has no name")
        aliases = data.get("aliases") or []
        if not isinstance(aliases, list):
            raise ValidationError(f"Mapping entry {index} ({name}) aliases must be a list")
        return cls(
            name=name.strip(),
            aliases=[a.strip() for a in aliases if isinstance(a, str) and a.strip()],
            source_id=data.get("source_id"),
            category=data.get("category"),
            status=data.get("status") or "matched",
        )


class MappingTable:
    """slug -> entry lookup over the usable entries."""

    def __init__(self, entries: List[MappingEntry]):
        self.entries = list(entries)
        self.invalid: List[ValidationError] = []
        self._lookup: Dict[str, MappingEntry] = {}
        usable = [e for e in self.entries if e.usable]
        # Name slugs take precedence over alias slugs
        for entry in usable:
            self._lookup.setdefault(entry.slug, entry)
        for entry in usable:
            for alias in entry.aliases:
                self._lookup.setdefault(slugify(alias), entry)
        self._lookup.pop("", None)

    def get(self, slug: str) -> Optional[MappingEntry]:
        return self._lookup.get(slug)

    def __len__(self) -> int:
        return len(self._lookup)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingTable":
        rows = data.get("exercises") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise ValidationError("Mapping file must contain an 'exercises' list")

        entries: List[MappingEntry] = []
        invalid: List[ValidationError] = []
        for index, row in enumerate(rows):
            try:
                entries.append(MappingEntry.from_dict(row, index))
            except ValidationError as e:
                logger.warning("Skipping mapping row: %s", e)
                invalid.append(e)

        table = cls(entries)
        table.invalid = invalid
        return table

    @classmethod
    def from_file(cls, path: str) -> "MappingTable":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        table = cls.from_dict(data)
        logger.info(
            "Loaded mapping %s: %d entries, %d lookup keys, %d invalid",
            path, len(table.entries), len(table), len(table.invalid),
        )
        return table


def load_mapping(path: Optional[str]) -> Tuple[Optional[MappingTable], List[ValidationError]]:
    if not path:
        return None, []
    table = MappingTable.from_file(path)
    return table, table.invalid


__all__ = [
    "MappingEntry",
    "MappingTable",
    "load_mapping",
    "NO_MATCH_STATUS",
]
