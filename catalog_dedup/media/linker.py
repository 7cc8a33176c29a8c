"""
Asset Linker - Link media folders to catalog records.

Folder matching is an ordered cascade of pure strategies; the first one
that yields an available folder wins. While linking, a folder is available
only if it holds at least one media file, so an empty folder is a miss and
the cascade moves on:

1. ExactSlug      - the record's stored slug
2. NameSlug       - slugify(name)
3. VariantStrip   - name slug minus one known prefix and/or suffix, or
                    minus parenthetical qualifiers
4. MappingTable   - mapping entry found by slug, name slug or alias slug;
                    resolves to slugify(entry.name)
5. AliasSlug      - slug of each stored alias

The loose substring matcher in media.bulk is deliberately not part of this
cascade.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections import abc
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from catalog_dedup import config
from catalog_dedup.apply.batching import BatchRunner, Outcome
from catalog_dedup.apply.journal import ChangeJournal
from catalog_dedup.catalog.models import ChangeSet, ExerciseRecord, MediaAsset, MediaStatus
from catalog_dedup.catalog.snapshot import CatalogSnapshot
from catalog_dedup.catalog.store import CatalogStore
from catalog_dedup.media.folders import FolderSource
from catalog_dedup.media.mapping import MappingTable
from catalog_dedup.naming.normalizer import slugify, strip_qualifiers
from catalog_dedup.naming.vocabulary import Vocabulary, default_vocabulary
from catalog_dedup.report import PhaseResult

logger = logging.getLogger(__name__)


class MatchStrategy(str, Enum):
    EXACT_SLUG = "ExactSlug"
    NAME_SLUG = "NameSlug"
    VARIANT_STRIP = "VariantStrip"
    MAPPING_TABLE = "MappingTable"
    ALIAS_SLUG = "AliasSlug"


@dataclass(frozen=True)
class LinkMatch:
    folder: str
    strategy: MatchStrategy


def _strip_longest_prefix(slug: str, prefixes) -> str:
    for prefix in sorted(prefixes, key=len, reverse=True):
        if slug.startswith(prefix):
            return slug[len(prefix):]
    return slug


def _strip_longest_suffix(slug: str, suffixes) -> str:
    for suffix in sorted(suffixes, key=len, reverse=True):
        if slug.endswith(suffix):
            return slug[:-len(suffix)]
    return slug


def generate_name_variants(name: str, vocabulary: Optional[Vocabulary] = None) -> List[str]:
    """
    Simplified slugs for a name, most specific first.

    "Barbell Curl (Gethin Variation)" -> ["curl-gethin-variation",
    "barbell-curl", "curl"]. The full name slug is not included (that is
    the NameSlug strategy) and variants shorter than min_variant_length are
    dropped.
    """
    vocab = vocabulary or default_vocabulary()
    slug = slugify(name)

    no_prefix = _strip_longest_prefix(slug, vocab.variant_prefixes)
    no_suffix = _strip_longest_suffix(slug, vocab.variant_suffixes)
    both = _strip_longest_suffix(no_prefix, vocab.variant_suffixes)
    no_parens = slugify(strip_qualifiers(name))

    variants: List[str] = []
    for variant in (no_prefix, no_suffix, both, no_parens):
        variant = variant.strip("-")
        if variant == slug or variant in variants:
            continue
        if len(variant) < vocab.min_variant_length:
            continue
        variants.append(variant)
    return variants


# Strategies: (record, folders, mapping, vocabulary) -> folder or None

def match_exact_slug(record, folders, mapping, vocabulary) -> Optional[str]:
    if record.slug and record.slug in folders:
        return record.slug
    return None


def match_name_slug(record, folders, mapping, vocabulary) -> Optional[str]:
    slug = record.name_slug
    return slug if slug and slug in folders else None


def match_variant_strip(record, folders, mapping, vocabulary) -> Optional[str]:
    for variant in generate_name_variants(record.name, vocabulary):
        if variant in folders:
            return variant
    return None


def match_mapping_table(record, folders, mapping, vocabulary) -> Optional[str]:
    if mapping is None:
        return None
    keys = [record.slug, record.name_slug] + [slugify(a) for a in record.alias_names]
    for key in keys:
        if not key:
            continue
        entry = mapping.get(key)
        if entry is not None and entry.slug in folders:
            return entry.slug
    return None


def match_alias_slug(record, folders, mapping, vocabulary) -> Optional[str]:
    for alias in record.alias_names:
        slug = slugify(alias)
        if slug and slug in folders:
            return slug
    return None


StrategyFn = Callable[
    [ExerciseRecord, AbstractSet[str], Optional[MappingTable], Vocabulary],
    Optional[str],
]

CASCADE: List[Tuple[MatchStrategy, StrategyFn]] = [
    (MatchStrategy.EXACT_SLUG, match_exact_slug),
    (MatchStrategy.NAME_SLUG, match_name_slug),
    (MatchStrategy.VARIANT_STRIP, match_variant_strip),
    (MatchStrategy.MAPPING_TABLE, match_mapping_table),
    (MatchStrategy.ALIAS_SLUG, match_alias_slug),
]


def find_media_folder(
    record: ExerciseRecord,
    folders: AbstractSet[str],
    mapping: Optional[MappingTable] = None,
    vocabulary: Optional[Vocabulary] = None,
) -> Optional[LinkMatch]:
    """Run the cascade for one record. Pure."""
    vocab = vocabulary or default_vocabulary()
    for strategy, match in CASCADE:
        folder = match(record, folders, mapping, vocab)
        if folder:
            return LinkMatch(folder=folder, strategy=strategy)
    return None


class AssetFolders(abc.Set):
    """
    Folder names that hold at least one media file.

    Membership lists the folder on first use and caches the listing, so the
    cascade only lists the folders it actually checks.
    """

    def __init__(self, folders: Iterable[str], list_assets: Callable[[str], List[str]]):
        self._folders = frozenset(folders)
        self._list_assets = list_assets
        self._assets: Dict[str, List[str]] = {}

    def assets(self, folder: str) -> List[str]:
        if folder not in self._folders:
            return []
        if folder not in self._assets:
            self._assets[folder] = self._list_assets(folder)
        return self._assets[folder]

    def __contains__(self, folder: object) -> bool:
        return isinstance(folder, str) and bool(self.assets(folder))

    def __iter__(self) -> Iterator[str]:
        return (f for f in sorted(self._folders) if self.assets(f))

    def __len__(self) -> int:
        return sum(1 for _ in self)


def choose_primary_asset(filenames: List[str]) -> Optional[str]:
    """File with stem "0" if present, else the first listed."""
    for filename in filenames:
        if os.path.splitext(filename)[0] == config.PRIMARY_ASSET_STEM:
            return filename
    return filenames[0] if filenames else None


class AssetLinker:
    """
    Fill primary images from media folders.

    Fill-empty-only unless overwrite=True. Each link sets the record's
    primary image and creates an approved MediaAsset attributed to
    system_user_id (skipped if the record already owns one with that url).
    """

    def __init__(
        self,
        store: CatalogStore,
        snapshot: CatalogSnapshot,
        folder_source: FolderSource,
        mapping: Optional[MappingTable] = None,
        system_user_id: Optional[str] = None,
        dry_run: bool = True,
        overwrite: bool = False,
        journal: Optional[ChangeJournal] = None,
        runner: Optional[BatchRunner] = None,
        vocabulary: Optional[Vocabulary] = None,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        if not dry_run and not system_user_id:
            raise ValueError("A system user id is required to create media in apply mode")
        self.store = store
        self.snapshot = snapshot
        self.folder_source = folder_source
        self.mapping = mapping
        self.system_user_id = system_user_id
        self.dry_run = dry_run
        self.overwrite = overwrite
        self.journal = journal
        self.runner = runner or BatchRunner()
        self.vocabulary = vocabulary or default_vocabulary()
        self.id_factory = id_factory
        self.folders = AssetFolders((), folder_source.list_assets)
        self.linked: List[str] = []
        self.unresolved: List[str] = []
        self.matches_by_strategy = {s.value: 0 for s in MatchStrategy}

    def candidates(self) -> Iterator[ExerciseRecord]:
        for record in sorted(self.snapshot.active_records(), key=lambda r: r.id):
            if self.overwrite or not record.primary_image_url:
                yield record

    def link_record(self, record: ExerciseRecord) -> Outcome:
        match = find_media_folder(record, self.folders, self.mapping, self.vocabulary)
        if match is None:
            self.unresolved.append(record.id)
            return "UNRESOLVED"

        primary = choose_primary_asset(self.folders.assets(match.folder))
        url = self.folder_source.asset_url(match.folder, primary)
        if record.primary_image_url == url:
            return "UNCHANGED"

        change_set = ChangeSet(label=f"link:{record.id}")
        change_set.update_record(record.id, primary_image_url=url)
        if not any(m.url == url for m in self.snapshot.media_owned_by(record.id)):
            change_set.new_media.append(MediaAsset(
                id=self.id_factory(),
                owner_exercise_id=record.id,
                url=url,
                provider=self.folder_source.provider,
                status=MediaStatus.APPROVED,
                created_by=self.system_user_id,
            ))

        if not self.dry_run:
            self.store.commit(change_set)
        if self.journal is not None:
            self.journal.record(change_set, self.snapshot)
        self.snapshot.apply(change_set)

        self.linked.append(record.id)
        self.matches_by_strategy[match.strategy.value] += 1
        logger.debug("%s -> %s via %s", record.name, url, match.strategy.value)
        return True

    def run(self) -> PhaseResult:
        folder_names = self.runner.call(self.folder_source.list_folders)
        self.folders = AssetFolders(folder_names, self.folder_source.list_assets)
        candidates = list(self.candidates())
        logger.info(
            "Linking media: %d candidate records, %d folders",
            len(candidates), len(folder_names),
        )
        result = self.runner.run(
            "link_media",
            candidates,
            item_id=lambda record: record.id,
            handler=self.link_record,
        )
        logger.info("Matches by strategy: %s", self.matches_by_strategy)
        return result


__all__ = [
    "MatchStrategy",
    "LinkMatch",
    "CASCADE",
    "generate_name_variants",
    "find_media_folder",
    "AssetFolders",
    "choose_primary_asset",
    "AssetLinker",
]
