"""
Firestore Catalog Store - Live catalog backend.

Collections:
- exercises/{record_id}
- exercise_media/{media_id}  (exercise_id = owning record)
- catalog_changes/{change_id}

Key rules:
- One ChangeSet = one WriteBatch, so a merge plan lands completely or not at all
- Backend errors are translated into engine error kinds at this boundary
- FIRESTORE_EMULATOR_HOST routes the client to the local emulator
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from catalog_dedup import config
from catalog_dedup.catalog.models import ChangeSet
from catalog_dedup.catalog.store import CatalogStore, record_updates_to_doc
from catalog_dedup.errors import InvariantViolation, NotFoundError, TransientIOError

logger = logging.getLogger(__name__)

# Hard Firestore limit for writes in one batch
MAX_WRITES_PER_BATCH = 500

TRANSIENT_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.ResourceExhausted,
    gcp_exceptions.Aborted,
    gcp_exceptions.RetryError,
)


def get_firestore_client(project: Optional[str] = None) -> firestore.Client:
    """Get a Firestore client, honouring the emulator env var."""
    emulator_host = os.environ.get("FIRESTORE_EMULATOR_HOST")
    if emulator_host:
        logger.info("Using Firestore emulator at %s", emulator_host)
        return firestore.Client(project=project or config.PROJECT_ID or "demo-catalog")
    return firestore.Client(project=project or config.PROJECT_ID or None)


class FirestoreCatalogStore(CatalogStore):
    """Catalog store backed by Firestore."""

    def __init__(self, client: Optional[firestore.Client] = None):
        self._db = client

    @property
    def db(self) -> firestore.Client:
        # Lazy so dry-run code paths that never touch the store need no credentials
        if self._db is None:
            self._db = get_firestore_client()
        return self._db

    def _stream(self, query) -> Iterator[Tuple[str, Dict[str, Any]]]:
        try:
            for doc in query.stream():
                yield doc.id, doc.to_dict() or {}
        except TRANSIENT_ERRORS as e:
            raise TransientIOError(f"Firestore read failed: {e}") from e

    def stream_record_docs(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        return self._stream(self.db.collection(config.EXERCISES_COLLECTION))

    def stream_media_docs(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        return self._stream(self.db.collection(config.MEDIA_COLLECTION))

    def query_record_docs(
        self,
        active: Optional[bool] = None,
        curated: Optional[bool] = None,
        name: Optional[str] = None,
        alias: Optional[str] = None,
    ) -> Iterator[Tuple[str, Dict[str, Any]]]:
        query = self.db.collection(config.EXERCISES_COLLECTION)
        if active is not None:
            query = query.where(filter=FieldFilter("is_active", "==", active))
        if curated is not None:
            query = query.where(filter=FieldFilter("curated", "==", curated))
        if name is not None:
            query = query.where(filter=FieldFilter("name", "==", name))
        if alias is not None:
            query = query.where(filter=FieldFilter("alias_names", "array_contains", alias))
        return self._stream(query)

    def commit(self, change_set: ChangeSet) -> None:
        if change_set.write_count() > MAX_WRITES_PER_BATCH:
            raise InvariantViolation(
                f"{change_set.label} needs {change_set.write_count()} writes, "
                f"more than one atomic batch allows ({MAX_WRITES_PER_BATCH})"
            )

        now = datetime.now(timezone.utc)
        exercises = self.db.collection(config.EXERCISES_COLLECTION)
        media = self.db.collection(config.MEDIA_COLLECTION)
        batch = self.db.batch()

        for record_id, fields in change_set.record_updates.items():
            update = record_updates_to_doc(fields)
            update["updated_at"] = now
            batch.update(exercises.document(record_id), update)
        for media_id, owner_id in change_set.media_owner_updates.items():
            batch.update(media.document(media_id), {"exercise_id": owner_id, "updated_at": now})
        for record in change_set.new_records:
            batch.create(
                exercises.document(record.id),
                dict(record.to_doc(), created_at=now, updated_at=now),
            )
        for asset in change_set.new_media:
            batch.create(
                media.document(asset.id),
                dict(asset.to_doc(), created_at=now, updated_at=now),
            )

        try:
            batch.commit()
        except gcp_exceptions.NotFound as e:
            raise NotFoundError(f"{change_set.label}: target missing ({e})") from e
        except TRANSIENT_ERRORS as e:
            raise TransientIOError(f"{change_set.label}: commit failed ({e})") from e

        logger.debug("Committed %s (%d writes)", change_set.label, change_set.write_count())

    def save_journal(self, entry: Dict[str, Any]) -> str:
        change_id = entry["change_id"]
        try:
            self.db.collection(config.CHANGES_COLLECTION).document(change_id).set(entry)
        except TRANSIENT_ERRORS as e:
            raise TransientIOError(f"Journal write failed: {e}") from e
        return change_id


__all__ = [
    "FirestoreCatalogStore",
    "get_firestore_client",
    "MAX_WRITES_PER_BATCH",
]
