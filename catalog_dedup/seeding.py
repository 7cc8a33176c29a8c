"""
Base Exercise Seeder - Make sure every mapped exercise exists in the catalog.

For each usable mapping entry:
- an existing record (same name ignoring case, or same stored slug) gets the
  entry's aliases unioned in and, when it has none, an image from the exact
  slug folder
- otherwise a curated CSV_IMPORT record is created, with its image from the
  exact slug folder or the loose substring match

Existing records are never overwritten and inactive ones are never
reactivated.
"""

from __future__ import annotations

import logging
import uuid
from typing import AbstractSet, Callable, List, Optional

from catalog_dedup.apply.batching import BatchRunner, Outcome
from catalog_dedup.apply.journal import ChangeJournal
from catalog_dedup.catalog.models import (
    ChangeSet,
    ExerciseRecord,
    ExerciseSource,
    MediaAsset,
    MediaStatus,
    union_aliases,
)
from catalog_dedup.catalog.snapshot import CatalogSnapshot
from catalog_dedup.catalog.store import CatalogStore
from catalog_dedup.media.bulk import find_folder_loose
from catalog_dedup.media.folders import FolderSource
from catalog_dedup.media.linker import choose_primary_asset
from catalog_dedup.media.mapping import MappingEntry, MappingTable
from catalog_dedup.naming.vocabulary import CategoryTable, default_categories
from catalog_dedup.report import PhaseResult

logger = logging.getLogger(__name__)


class BaseExerciseSeeder:

    def __init__(
        self,
        store: CatalogStore,
        snapshot: CatalogSnapshot,
        mapping: MappingTable,
        folder_source: Optional[FolderSource] = None,
        system_user_id: Optional[str] = None,
        dry_run: bool = True,
        categories: Optional[CategoryTable] = None,
        journal: Optional[ChangeJournal] = None,
        runner: Optional[BatchRunner] = None,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.store = store
        self.snapshot = snapshot
        self.mapping = mapping
        self.folder_source = folder_source
        self.system_user_id = system_user_id
        self.dry_run = dry_run
        self.categories = categories or default_categories()
        self.journal = journal
        self.runner = runner or BatchRunner()
        self.id_factory = id_factory
        self.folders: AbstractSet[str] = frozenset()
        self.created: List[str] = []
        self.updated: List[str] = []

    def find_existing(self, entry: MappingEntry) -> Optional[ExerciseRecord]:
        matches = self.snapshot.find_by_name(entry.name)
        if not matches:
            slug = entry.slug
            matches = sorted(
                (r for r in self.snapshot.records.values() if r.slug == slug),
                key=lambda r: r.id,
            )
        active = [r for r in matches if r.active]
        if active:
            return active[0]
        return matches[0] if matches else None

    def _image_url(self, folder: Optional[str]) -> Optional[str]:
        if not folder or self.folder_source is None:
            return None
        primary = choose_primary_asset(self.folder_source.list_assets(folder))
        if primary is None:
            return None
        return self.folder_source.asset_url(folder, primary)

    def _media_for(self, record_id: str, url: str) -> MediaAsset:
        return MediaAsset(
            id=self.id_factory(),
            owner_exercise_id=record_id,
            url=url,
            provider=self.folder_source.provider,
            status=MediaStatus.APPROVED,
            created_by=self.system_user_id,
        )

    def _update_existing(self, record: ExerciseRecord, entry: MappingEntry) -> Optional[ChangeSet]:
        change_set = ChangeSet(label=f"seed-update:{record.id}")
        aliases = union_aliases(record.alias_names, [entry.name] + entry.aliases, record.name)
        if aliases != record.alias_names:
            change_set.update_record(record.id, alias_names=aliases)

        if not record.primary_image_url and entry.slug in self.folders:
            url = self._image_url(entry.slug)
            if url:
                change_set.update_record(record.id, primary_image_url=url)
                if not any(m.url == url for m in self.snapshot.media_owned_by(record.id)):
                    change_set.new_media.append(self._media_for(record.id, url))

        return None if change_set.is_empty() else change_set

    def _create(self, entry: MappingEntry) -> ChangeSet:
        folder = entry.slug if entry.slug in self.folders else None
        if folder is None and self.folders:
            folder = find_folder_loose(entry.name, self.folders)
        url = self._image_url(folder)

        record = ExerciseRecord(
            id=self.id_factory(),
            name=entry.name,
            slug=entry.slug,
            category=self.categories.category_for(entry.category),
            body_part=self.categories.body_part_for(entry.category),
            alias_names=list(entry.aliases),
            source=ExerciseSource.CSV_IMPORT,
            curated=True,
            active=True,
            primary_image_url=url,
        )
        change_set = ChangeSet(label=f"seed-create:{record.id}", new_records=[record])
        if url:
            change_set.new_media.append(self._media_for(record.id, url))
        return change_set

    def seed_entry(self, entry: MappingEntry) -> Outcome:
        if not entry.usable:
            return "NO_MATCH"

        existing = self.find_existing(entry)
        if existing is not None and not existing.active:
            return "INACTIVE_MATCH"

        if existing is not None:
            change_set = self._update_existing(existing, entry)
            if change_set is None:
                return "UNCHANGED"
        else:
            change_set = self._create(entry)

        if not self.dry_run:
            self.store.commit(change_set)
        if self.journal is not None:
            self.journal.record(change_set, self.snapshot)
        self.snapshot.apply(change_set)

        if existing is not None:
            self.updated.append(existing.id)
        else:
            self.created.append(change_set.new_records[0].id)
        logger.debug(
            "%s %s",
            "Updated" if existing is not None else "Created",
            entry.name,
        )
        return True

    def run(self) -> PhaseResult:
        if not self.dry_run and self.folder_source is not None and not self.system_user_id:
            raise ValueError("A system user id is required to create media in apply mode")
        if self.folder_source is not None:
            self.folders = frozenset(self.runner.call(self.folder_source.list_folders))

        result = self.runner.run(
            "seed_base",
            self.mapping.entries,
            item_id=lambda entry: entry.name,
            handler=self.seed_entry,
        )
        logger.info(
            "Seeding: %d created, %d updated, %d skipped",
            len(self.created), len(self.updated), len(result.skipped),
        )
        return result


__all__ = [
    "BaseExerciseSeeder",
]
