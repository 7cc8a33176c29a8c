"""
Change Journal - Durable record of catalog mutations made by a run.

Each committed ChangeSet becomes one journal operation with before/after
values for the touched records. The whole run is saved as a single
catalog_changes/{run_id}_{phase} entry so a human can audit it. Only
committed change sets are journaled; failed items are listed in the run
report.
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from catalog_dedup.catalog.models import ChangeSet
from catalog_dedup.catalog.snapshot import CatalogSnapshot
from catalog_dedup.catalog.store import CatalogStore

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S") + "-" + uuid.uuid4().hex[:6]


class ChangeJournal:
    """Journal for one phase of one run."""

    def __init__(self, run_id: str, phase: str):
        self.run_id = run_id
        self.phase = phase
        self.operations: List[Dict[str, Any]] = []
        self.started_at = datetime.now(timezone.utc)

    def record(self, change_set: ChangeSet, snapshot: CatalogSnapshot) -> None:
        """
        Record a change set.

        Must be called before the change set is projected onto the snapshot
        so the "before" values are the pre-change ones.
        """
        before: Dict[str, Any] = {}
        for record_id, fields in change_set.record_updates.items():
            record = snapshot.records.get(record_id)
            if record is not None:
                before[record_id] = {attr: copy.deepcopy(getattr(record, attr)) for attr in fields}

        media_before = {
            media_id: snapshot.media[media_id].owner_exercise_id
            for media_id in change_set.media_owner_updates
            if media_id in snapshot.media
        }

        self.operations.append({
            "label": change_set.label,
            "targets": change_set.target_ids(),
            "before": {"records": before, "media_owners": media_before},
            "after": change_set.to_dict(),
            "executed_at": datetime.now(timezone.utc).isoformat(),
        })

    def to_dict(self, result_summary: Optional[str] = None) -> Dict[str, Any]:
        change_id = f"{self.run_id}_{self.phase}"
        return {
            "change_id": change_id,
            "run_id": self.run_id,
            "phase": self.phase,
            "operations": self.operations,
            "operation_count": len(self.operations),
            "started_at": self.started_at.isoformat(),
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "result_summary": result_summary,
        }

    def save(self, store: CatalogStore, result_summary: Optional[str] = None) -> Optional[str]:
        """Persist to the store; nothing is written for an empty journal."""
        if not self.operations:
            return None
        change_id = store.save_journal(self.to_dict(result_summary))
        logger.info("Saved journal entry: %s with %d operations", change_id, len(self.operations))
        return change_id


__all__ = [
    "ChangeJournal",
    "new_run_id",
]
