"""
Catalog Store - Record/media persistence used by the engine.

Two backends share one interface:
- InMemoryCatalogStore: dict-backed, optionally loaded from / saved to a JSON
  catalog export (offline review, tests)
- FirestoreCatalogStore (firestore_store.py): live catalog

Key rules:
- commit() applies a whole ChangeSet or nothing
- Stores stream raw documents; conversion and validation happen in snapshot.py
"""

from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from catalog_dedup import config
from catalog_dedup.catalog.models import MUTABLE_RECORD_FIELDS, ChangeSet, ExerciseRecord
from catalog_dedup.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CatalogStore(ABC):
    """Queryable record/media store."""

    @abstractmethod
    def stream_record_docs(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield (record_id, document) for every exercise."""

    @abstractmethod
    def stream_media_docs(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield (media_id, document) for every media asset."""

    @abstractmethod
    def query_record_docs(
        self,
        active: Optional[bool] = None,
        curated: Optional[bool] = None,
        name: Optional[str] = None,
        alias: Optional[str] = None,
    ) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield exercise documents matching every given filter."""

    @abstractmethod
    def commit(self, change_set: ChangeSet) -> None:
        """
        Atomically apply a change set.

        Raises:
            NotFoundError: A targeted record or media asset does not exist
            TransientIOError: Backend failure; nothing was applied
        """

    @abstractmethod
    def save_journal(self, entry: Dict[str, Any]) -> str:
        """Persist a journal entry and return its change id."""

    def query_records(self, **filters: Any) -> List[ExerciseRecord]:
        """Query and convert, skipping malformed documents."""
        records = []
        for doc_id, data in self.query_record_docs(**filters):
            try:
                records.append(ExerciseRecord.from_doc(doc_id, data))
            except ValidationError as e:
                logger.warning("Skipping malformed exercise %s: %s", doc_id, e)
        return records


def record_updates_to_doc(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Translate model attribute names to document field names."""
    return {MUTABLE_RECORD_FIELDS[k]: v for k, v in fields.items()}


class InMemoryCatalogStore(CatalogStore):
    """
    Dict-backed store.

    Layout mirrors the Firestore collections:
    {"exercises": {id: doc}, "exercise_media": {id: doc}, "catalog_changes": [...]}
    """

    def __init__(
        self,
        exercises: Optional[Dict[str, Dict[str, Any]]] = None,
        media: Optional[Dict[str, Dict[str, Any]]] = None,
        path: Optional[str] = None,
    ):
        self.exercises: Dict[str, Dict[str, Any]] = copy.deepcopy(exercises or {})
        self.media: Dict[str, Dict[str, Any]] = copy.deepcopy(media or {})
        self.changes: List[Dict[str, Any]] = []
        self.path = path

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryCatalogStore":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        store = cls(
            exercises=data.get(config.EXERCISES_COLLECTION, {}),
            media=data.get(config.MEDIA_COLLECTION, {}),
            path=path,
        )
        store.changes = list(data.get(config.CHANGES_COLLECTION, []))
        logger.info(
            "Loaded catalog export %s: %d exercises, %d media",
            path, len(store.exercises), len(store.media),
        )
        return store

    def save_json_file(self, path: Optional[str] = None) -> str:
        target = path or self.path
        if not target:
            raise ValueError("No path given for catalog export")
        with open(target, "w", encoding="utf-8") as f:
            json.dump(
                {
                    config.EXERCISES_COLLECTION: self.exercises,
                    config.MEDIA_COLLECTION: self.media,
                    config.CHANGES_COLLECTION: self.changes,
                },
                f,
                indent=2,
                default=str,
            )
        return target

    def stream_record_docs(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        for doc_id in sorted(self.exercises):
            yield doc_id, copy.deepcopy(self.exercises[doc_id])

    def stream_media_docs(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        for doc_id in sorted(self.media):
            yield doc_id, copy.deepcopy(self.media[doc_id])

    def query_record_docs(
        self,
        active: Optional[bool] = None,
        curated: Optional[bool] = None,
        name: Optional[str] = None,
        alias: Optional[str] = None,
    ) -> Iterator[Tuple[str, Dict[str, Any]]]:
        name_key = name.casefold() if name else None
        alias_key = alias.casefold() if alias else None
        for doc_id, data in self.stream_record_docs():
            if active is not None and bool(data.get("is_active", True)) != active:
                continue
            if curated is not None and bool(data.get("curated", False)) != curated:
                continue
            if name_key is not None and (data.get("name") or "").casefold() != name_key:
                continue
            if alias_key is not None and alias_key not in {
                a.casefold() for a in data.get("alias_names") or [] if isinstance(a, str)
            }:
                continue
            yield doc_id, data

    def commit(self, change_set: ChangeSet) -> None:
        # Validate every target first so a bad id leaves nothing half-applied
        for record_id in change_set.record_updates:
            if record_id not in self.exercises:
                raise NotFoundError(f"Exercise {record_id} not found", record_id=record_id)
        for media_id, owner_id in change_set.media_owner_updates.items():
            if media_id not in self.media:
                raise NotFoundError(f"Media {media_id} not found", record_id=media_id)
            if owner_id not in self.exercises:
                raise NotFoundError(f"Exercise {owner_id} not found", record_id=owner_id)

        now = datetime.now(timezone.utc).isoformat()
        for record_id, fields in change_set.record_updates.items():
            self.exercises[record_id].update(record_updates_to_doc(fields))
            self.exercises[record_id]["updated_at"] = now
        for media_id, owner_id in change_set.media_owner_updates.items():
            self.media[media_id]["exercise_id"] = owner_id
            self.media[media_id]["updated_at"] = now
        for record in change_set.new_records:
            self.exercises[record.id] = dict(record.to_doc(), created_at=now, updated_at=now)
        for asset in change_set.new_media:
            self.media[asset.id] = dict(asset.to_doc(), created_at=now, updated_at=now)

        logger.debug("Committed %s (%d writes)", change_set.label, change_set.write_count())

    def save_journal(self, entry: Dict[str, Any]) -> str:
        self.changes.append(copy.deepcopy(entry))
        return entry["change_id"]


__all__ = [
    "CatalogStore",
    "InMemoryCatalogStore",
    "record_updates_to_doc",
]
