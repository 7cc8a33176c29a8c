"""
Catalog Models - Exercise records, media assets and change sets.

Firestore Collections:
- exercises/{record_id}: Exercise records
- exercise_media/{media_id}: Media assets (exactly one owning exercise)
- catalog_changes/{change_id}: Change journal entries

Key design decisions:
- normalized_key is derived from name on every access, never stored
- alias_names never contains the record's own name (case-insensitive)
- deactivation always clears curated; records are never deleted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from catalog_dedup.errors import ValidationError
from catalog_dedup.naming.normalizer import normalize_name, slugify


class ExerciseSource(str, Enum):
    """Where a record was ingested from."""
    CURATED = "CURATED"
    EXTERNAL_DB = "EXTERNAL_DB"        # Highest-trust third-party database
    PROGRAM_IMPORT = "PROGRAM_IMPORT"
    CSV_IMPORT = "CSV_IMPORT"


class MediaStatus(str, Enum):
    """Moderation status of a media asset."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def union_aliases(
    existing: Iterable[str],
    additions: Iterable[str],
    own_name: str,
) -> List[str]:
    """
    Case-insensitive union of alias lists.

    First-seen casing wins, blank names are dropped and anything equal to
    own_name (ignoring case) is excluded.
    """
    own_key = (own_name or "").strip().casefold()
    seen = set()
    result: List[str] = []
    for alias in list(existing) + list(additions):
        if not isinstance(alias, str):
            continue
        clean = alias.strip()
        key = clean.casefold()
        if not clean or key == own_key or key in seen:
            continue
        seen.add(key)
        result.append(clean)
    return result


@dataclass
class ExerciseRecord:
    """Single catalog exercise."""
    id: str
    name: str
    category: str = ""
    alias_names: List[str] = field(default_factory=list)
    body_part: Optional[str] = None
    source: ExerciseSource = ExerciseSource.CURATED
    curated: bool = False
    active: bool = True
    usage_count: int = 0
    primary_image_url: Optional[str] = None
    video_url: Optional[str] = None
    slug: Optional[str] = None
    merged_into: Optional[str] = None

    def __post_init__(self):
        self.alias_names = union_aliases(self.alias_names, [], self.name)

    @property
    def normalized_key(self) -> str:
        return normalize_name(self.name)

    @property
    def name_slug(self) -> str:
        return slugify(self.name)

    @property
    def cluster_key(self) -> str:
        """normalized_key plus the body-part discriminator."""
        return f"{self.normalized_key}|{(self.body_part or '').lower()}"

    def deactivate(self, merged_into: Optional[str] = None) -> None:
        self.active = False
        self.curated = False
        if merged_into:
            self.merged_into = merged_into

    @classmethod
    def from_doc(cls, doc_id: str, data: Dict[str, Any]) -> "ExerciseRecord":
        """
        Create from a store document.

        Raises:
            ValidationError: If the document cannot describe a record
        """
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"Exercise {doc_id} has no name", record_id=doc_id)

        source_raw = data.get("source") or ExerciseSource.CURATED.value
        try:
            source = ExerciseSource(source_raw)
        except ValueError:
            raise ValidationError(
                f"Exercise {doc_id} has unknown source {source_raw!r}",
                record_id=doc_id,
            )

        usage = data.get("usage_count") or 0
        if isinstance(usage, bool) or not isinstance(usage, int) or usage < 0:
            raise ValidationError(
                f"Exercise {doc_id} has invalid usage_count {usage!r}",
                record_id=doc_id,
            )

        aliases = data.get("alias_names") or []
        if not isinstance(aliases, list):
            raise ValidationError(
                f"Exercise {doc_id} alias_names must be a list",
                record_id=doc_id,
            )

        active = bool(data.get("is_active", True))
        return cls(
            id=doc_id,
            name=name.strip(),
            category=data.get("category") or "",
            alias_names=aliases,
            body_part=data.get("body_part"),
            source=source,
            curated=bool(data.get("curated", False)) and active,
            active=active,
            usage_count=usage,
            primary_image_url=data.get("image_url"),
            video_url=data.get("video_url"),
            slug=data.get("slug"),
            merged_into=data.get("merged_into"),
        )

    def to_doc(self) -> Dict[str, Any]:
        """Convert to a store document (normalized_key is not persisted)."""
        return {
            "name": self.name,
            "slug": self.slug,
            "alias_names": list(self.alias_names),
            "category": self.category,
            "body_part": self.body_part,
            "source": self.source.value,
            "curated": self.curated,
            "is_active": self.active,
            "usage_count": self.usage_count,
            "image_url": self.primary_image_url,
            "video_url": self.video_url,
            "merged_into": self.merged_into,
        }


@dataclass
class MediaAsset:
    """Media file attached to exactly one exercise."""
    id: str
    owner_exercise_id: str
    url: str
    provider: str = "upload"
    status: MediaStatus = MediaStatus.APPROVED
    created_by: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status == MediaStatus.APPROVED and bool(self.url)

    @classmethod
    def from_doc(cls, doc_id: str, data: Dict[str, Any]) -> "MediaAsset":
        owner = data.get("exercise_id")
        if not owner:
            raise ValidationError(f"Media {doc_id} has no owning exercise", record_id=doc_id)
        try:
            status = MediaStatus(data.get("status") or MediaStatus.PENDING.value)
        except ValueError:
            raise ValidationError(
                f"Media {doc_id} has unknown status {data.get('status')!r}",
                record_id=doc_id,
            )
        return cls(
            id=doc_id,
            owner_exercise_id=owner,
            url=data.get("url") or "",
            provider=data.get("provider") or "upload",
            status=status,
            created_by=data.get("created_by"),
        )

    def to_doc(self) -> Dict[str, Any]:
        return {
            "exercise_id": self.owner_exercise_id,
            "url": self.url,
            "provider": self.provider,
            "status": self.status.value,
            "created_by": self.created_by,
        }


# Record fields the engine is allowed to change, keyed by model attribute
MUTABLE_RECORD_FIELDS = {
    "alias_names": "alias_names",
    "active": "is_active",
    "curated": "curated",
    "merged_into": "merged_into",
    "primary_image_url": "image_url",
}


@dataclass
class ChangeSet:
    """
    Unit of atomic commit against a catalog store.

    Stores apply every part of a change set or none of it.
    """
    label: str
    record_updates: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    media_owner_updates: Dict[str, str] = field(default_factory=dict)
    new_records: List[ExerciseRecord] = field(default_factory=list)
    new_media: List[MediaAsset] = field(default_factory=list)

    def update_record(self, record_id: str, **fields: Any) -> None:
        unknown = set(fields) - set(MUTABLE_RECORD_FIELDS)
        if unknown:
            raise ValueError(f"Fields not mutable by the engine: {sorted(unknown)}")
        self.record_updates.setdefault(record_id, {}).update(fields)

    def move_media(self, media_id: str, new_owner_id: str) -> None:
        self.media_owner_updates[media_id] = new_owner_id

    def is_empty(self) -> bool:
        return not (
            self.record_updates
            or self.media_owner_updates
            or self.new_records
            or self.new_media
        )

    def write_count(self) -> int:
        return (
            len(self.record_updates)
            + len(self.media_owner_updates)
            + len(self.new_records)
            + len(self.new_media)
        )

    def target_ids(self) -> List[str]:
        ids = list(self.record_updates)
        ids.extend(r.id for r in self.new_records)
        return ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "record_updates": self.record_updates,
            "media_owner_updates": self.media_owner_updates,
            "new_records": {r.id: r.to_doc() for r in self.new_records},
            "new_media": {m.id: m.to_doc() for m in self.new_media},
        }


__all__ = [
    "ExerciseSource",
    "MediaStatus",
    "ExerciseRecord",
    "MediaAsset",
    "ChangeSet",
    "MUTABLE_RECORD_FIELDS",
    "union_aliases",
]
