"""
Merger - Apply merge plans to the catalog.

One plan = one ChangeSet:
a. canonical.alias_names += duplicate names and aliases (case-insensitive)
b. media owned by duplicates re-pointed to the canonical
c. duplicates soft-deactivated with merged_into = canonical id

The store commits the change set atomically, so a failed plan leaves
nothing behind and the next run retries it. In dry-run the change set is
only projected onto the snapshot.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from catalog_dedup.apply.batching import BatchRunner, Outcome
from catalog_dedup.apply.journal import ChangeJournal
from catalog_dedup.catalog.models import ChangeSet, union_aliases
from catalog_dedup.catalog.snapshot import CatalogSnapshot
from catalog_dedup.catalog.store import CatalogStore
from catalog_dedup.dedup.planner import MergePlan
from catalog_dedup.errors import InvariantViolation
from catalog_dedup.report import PhaseResult

logger = logging.getLogger(__name__)


def build_merge_change_set(plan: MergePlan, snapshot: CatalogSnapshot) -> ChangeSet:
    """
    Compute the change set for a plan without applying it.

    Raises:
        NotFoundError: Canonical or a duplicate is not in the snapshot
        InvariantViolation: Self-merge, empty plan or inactive member
    """
    if not plan.duplicate_ids:
        raise InvariantViolation(
            f"Plan for {plan.canonical_id} has no duplicates",
            record_id=plan.canonical_id,
        )
    if plan.canonical_id in plan.duplicate_ids:
        raise InvariantViolation(
            f"Plan would merge {plan.canonical_id} into itself",
            record_id=plan.canonical_id,
        )
    if len(set(plan.duplicate_ids)) != len(plan.duplicate_ids):
        raise InvariantViolation(
            f"Plan for {plan.canonical_id} lists a duplicate twice",
            record_id=plan.canonical_id,
        )

    canonical = snapshot.get(plan.canonical_id)
    duplicates = [snapshot.get(dup_id) for dup_id in plan.duplicate_ids]

    for record in [canonical] + duplicates:
        if not record.active:
            raise InvariantViolation(
                f"Plan for {plan.canonical_id} touches inactive record {record.id}",
                record_id=record.id,
            )

    change_set = ChangeSet(label=f"merge:{canonical.id}")

    incoming: List[str] = []
    for dup in duplicates:
        incoming.append(dup.name)
        incoming.extend(dup.alias_names)
    aliases = union_aliases(canonical.alias_names, incoming, canonical.name)
    if aliases != canonical.alias_names:
        change_set.update_record(canonical.id, alias_names=aliases)

    for dup in duplicates:
        for asset in snapshot.media_owned_by(dup.id):
            change_set.move_media(asset.id, canonical.id)
        change_set.update_record(
            dup.id,
            active=False,
            curated=False,
            merged_into=canonical.id,
        )

    return change_set


class Merger:
    """Runs merge plans against a store and keeps the snapshot in step."""

    def __init__(
        self,
        store: CatalogStore,
        snapshot: CatalogSnapshot,
        dry_run: bool = True,
        journal: Optional[ChangeJournal] = None,
        runner: Optional[BatchRunner] = None,
    ):
        self.store = store
        self.snapshot = snapshot
        self.dry_run = dry_run
        self.journal = journal
        self.runner = runner or BatchRunner()
        self.records_merged = 0
        self.aliases_added = 0
        self.media_moved = 0

    def apply_plan(self, plan: MergePlan) -> Outcome:
        change_set = build_merge_change_set(plan, self.snapshot)
        canonical = self.snapshot.get(plan.canonical_id)
        before_aliases = len(canonical.alias_names)

        if not self.dry_run:
            self.store.commit(change_set)

        if self.journal is not None:
            self.journal.record(change_set, self.snapshot)
        self.snapshot.apply(change_set)

        self.records_merged += len(plan.duplicate_ids)
        self.aliases_added += len(canonical.alias_names) - before_aliases
        self.media_moved += len(change_set.media_owner_updates)
        logger.info(
            "%s %s into %s (%d media moved)",
            "Would merge" if self.dry_run else "Merged",
            plan.duplicate_ids, plan.canonical_id,
            len(change_set.media_owner_updates),
        )
        return True

    def run(self, plans: List[MergePlan]) -> PhaseResult:
        return self.runner.run(
            "merge",
            plans,
            item_id=lambda plan: plan.canonical_id,
            handler=self.apply_plan,
        )


__all__ = [
    "Merger",
    "build_merge_change_set",
]
