"""
Catalog Package - Records, media assets, stores and the run snapshot.

This package provides:
- models: ExerciseRecord, MediaAsset, ChangeSet
- store: CatalogStore interface and the in-memory / JSON-export backend
- firestore_store: Firestore backend (imported explicitly, needs GCP libs)
- snapshot: CatalogSnapshot taken once per run
"""

from catalog_dedup.catalog.models import (
    ChangeSet,
    ExerciseRecord,
    ExerciseSource,
    MediaAsset,
    MediaStatus,
    union_aliases,
)

from catalog_dedup.catalog.store import (
    CatalogStore,
    InMemoryCatalogStore,
)

from catalog_dedup.catalog.snapshot import (
    CatalogSnapshot,
    load_snapshot,
    resolved_media_owners,
)


__all__ = [
    "ChangeSet",
    "ExerciseRecord",
    "ExerciseSource",
    "MediaAsset",
    "MediaStatus",
    "union_aliases",
    "CatalogStore",
    "InMemoryCatalogStore",
    "CatalogSnapshot",
    "load_snapshot",
    "resolved_media_owners",
]
