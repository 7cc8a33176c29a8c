"""
Catalog Pruner - Cap the number of active records.

Re-scores every active record with the merge scorer, keeps the top
`target` (ties by id ascending) and soft-deactivates the rest. Deactivations
are committed in chunks of at most BATCH_SIZE records.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from catalog_dedup import config
from catalog_dedup.apply.batching import BatchRunner, Outcome
from catalog_dedup.apply.journal import ChangeJournal
from catalog_dedup.catalog.models import ChangeSet, ExerciseRecord
from catalog_dedup.catalog.snapshot import CatalogSnapshot
from catalog_dedup.catalog.store import CatalogStore
from catalog_dedup.dedup.scorer import rank_records
from catalog_dedup.report import PhaseResult

logger = logging.getLogger(__name__)


class CatalogPruner:

    def __init__(
        self,
        store: CatalogStore,
        snapshot: CatalogSnapshot,
        target: int,
        dry_run: bool = True,
        journal: Optional[ChangeJournal] = None,
        runner: Optional[BatchRunner] = None,
        chunk_size: int = config.BATCH_SIZE,
    ):
        if target < 1:
            raise ValueError("target active count must be >= 1")
        self.store = store
        self.snapshot = snapshot
        self.target = target
        self.dry_run = dry_run
        self.journal = journal
        self.runner = runner or BatchRunner()
        self.chunk_size = chunk_size
        self.records_pruned = 0

    def select(self) -> Tuple[List[ExerciseRecord], List[ExerciseRecord]]:
        """Split active records into (kept, pruned). Read-only."""
        ranked = rank_records(
            self.snapshot.active_records(),
            self.snapshot.resolved_media_owner_ids(),
        )
        if len(ranked) <= self.target:
            return [r for r, _ in ranked], []
        return (
            [r for r, _ in ranked[:self.target]],
            [r for r, _ in ranked[self.target:]],
        )

    def _chunks(self, pruned: List[ExerciseRecord]) -> List[ChangeSet]:
        chunks = []
        for start in range(0, len(pruned), self.chunk_size):
            part = pruned[start:start + self.chunk_size]
            change_set = ChangeSet(label=f"prune:{start // self.chunk_size}")
            for record in part:
                change_set.update_record(record.id, active=False, curated=False)
            chunks.append(change_set)
        return chunks

    def _apply_chunk(self, change_set: ChangeSet) -> Outcome:
        if not self.dry_run:
            self.store.commit(change_set)
        if self.journal is not None:
            self.journal.record(change_set, self.snapshot)
        self.snapshot.apply(change_set)
        self.records_pruned += len(change_set.record_updates)
        return True

    def run(self) -> PhaseResult:
        kept, pruned = self.select()
        result = PhaseResult(phase="prune")
        if not pruned:
            logger.info(
                "Active count %d within target %d, nothing to prune",
                len(kept), self.target,
            )
            return result

        logger.info(
            "%s %d of %d active records (target %d)",
            "Would prune" if self.dry_run else "Pruning",
            len(pruned), len(kept) + len(pruned), self.target,
        )

        chunks = self._chunks(pruned)
        members: Dict[str, List[str]] = {c.label: list(c.record_updates) for c in chunks}
        chunk_result = self.runner.run(
            "prune",
            chunks,
            item_id=lambda change_set: change_set.label,
            handler=self._apply_chunk,
        )

        # Report per record rather than per chunk
        for label in chunk_result.succeeded:
            result.succeeded.extend(members[label])
        for failure in chunk_result.failed:
            for record_id in members[failure["id"]]:
                result.add_failure(record_id, failure["code"], failure["message"])
        for skip in chunk_result.skipped:
            for record_id in members[skip["id"]]:
                result.add_skip(record_id, skip["code"], skip["message"])
        for label in chunk_result.unprocessed:
            result.unprocessed.extend(members[label])
        result.aborted = chunk_result.aborted
        return result


__all__ = [
    "CatalogPruner",
]
