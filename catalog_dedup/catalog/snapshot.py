"""
Catalog Snapshot - In-memory view of the catalog taken once per run.

Every phase reads the snapshot; committed (or, in dry-run, projected) change
sets are applied to it so later phases see the post-merge catalog. Writers
outside this run are not observed.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from catalog_dedup.catalog.models import ChangeSet, ExerciseRecord, MediaAsset
from catalog_dedup.catalog.store import CatalogStore
from catalog_dedup.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class CatalogSnapshot:
    records: Dict[str, ExerciseRecord] = field(default_factory=dict)
    media: Dict[str, MediaAsset] = field(default_factory=dict)
    invalid: List[ValidationError] = field(default_factory=list)

    @classmethod
    def from_items(
        cls,
        records: Iterable[ExerciseRecord],
        media: Iterable[MediaAsset] = (),
    ) -> "CatalogSnapshot":
        return cls(
            records={r.id: r for r in records},
            media={m.id: m for m in media},
        )

    def get(self, record_id: str) -> ExerciseRecord:
        try:
            return self.records[record_id]
        except KeyError:
            raise NotFoundError(f"Exercise {record_id} not in snapshot", record_id=record_id)

    def active_records(self) -> List[ExerciseRecord]:
        return [r for r in self.records.values() if r.active]

    def media_owned_by(self, record_id: str) -> List[MediaAsset]:
        return [m for m in self.media.values() if m.owner_exercise_id == record_id]

    def resolved_media_owner_ids(self) -> Set[str]:
        return resolved_media_owners(self.media.values())

    def find_by_name(self, name: str) -> List[ExerciseRecord]:
        """Records whose name matches case-insensitively, id order."""
        key = (name or "").strip().casefold()
        return sorted(
            (r for r in self.records.values() if r.name.casefold() == key),
            key=lambda r: r.id,
        )

    def apply(self, change_set: ChangeSet) -> None:
        """Project a change set onto the snapshot."""
        for record_id, fields in change_set.record_updates.items():
            record = self.get(record_id)
            for attr, value in fields.items():
                setattr(record, attr, copy.deepcopy(value))
            if not record.active:
                record.curated = False
        for media_id, owner_id in change_set.media_owner_updates.items():
            if media_id not in self.media:
                raise NotFoundError(f"Media {media_id} not in snapshot", record_id=media_id)
            self.media[media_id].owner_exercise_id = owner_id
        for record in change_set.new_records:
            self.records[record.id] = copy.deepcopy(record)
        for asset in change_set.new_media:
            self.media[asset.id] = copy.deepcopy(asset)

    def copy(self) -> "CatalogSnapshot":
        return copy.deepcopy(self)


def resolved_media_owners(media: Iterable[MediaAsset]) -> Set[str]:
    """Ids of records owning at least one resolved media asset."""
    return {m.owner_exercise_id for m in media if m.is_resolved}


def load_snapshot(store: CatalogStore) -> CatalogSnapshot:
    """
    Read the whole catalog once.

    Malformed documents are skipped and kept on snapshot.invalid for the
    run report.
    """
    snapshot = CatalogSnapshot()

    for doc_id, data in store.stream_record_docs():
        try:
            snapshot.records[doc_id] = ExerciseRecord.from_doc(doc_id, data)
        except ValidationError as e:
            logger.warning("Skipping malformed exercise %s: %s", doc_id, e)
            snapshot.invalid.append(e)

    for doc_id, data in store.stream_media_docs():
        try:
            snapshot.media[doc_id] = MediaAsset.from_doc(doc_id, data)
        except ValidationError as e:
            logger.warning("Skipping malformed media %s: %s", doc_id, e)
            snapshot.invalid.append(e)

    logger.info(
        "Snapshot: %d exercises (%d active), %d media, %d malformed",
        len(snapshot.records),
        len(snapshot.active_records()),
        len(snapshot.media),
        len(snapshot.invalid),
    )
    return snapshot


__all__ = [
    "CatalogSnapshot",
    "load_snapshot",
    "resolved_media_owners",
]
