"""
Scorer - Rank records for canonical selection and pruning.

Bands, highest priority first:
    curated                      +1000
    highest-trust external tier  +500
    has resolved media           +300
    usage_count                  +min(usage_count, 200)
    direct image reference       +50
    direct video reference       +25

Shared by MergePlanner and CatalogPruner; keep it pure.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable, List, Tuple

from catalog_dedup.catalog.models import ExerciseRecord, ExerciseSource

CURATED_WEIGHT = 1000
TRUSTED_SOURCE_WEIGHT = 500
RESOLVED_MEDIA_WEIGHT = 300
USAGE_CAP = 200
IMAGE_WEIGHT = 50
VIDEO_WEIGHT = 25

TRUSTED_SOURCE = ExerciseSource.EXTERNAL_DB


def score_record(record: ExerciseRecord, has_resolved_media: bool) -> int:
    score = 0
    if record.curated:
        score += CURATED_WEIGHT
    if record.source == TRUSTED_SOURCE:
        score += TRUSTED_SOURCE_WEIGHT
    if has_resolved_media:
        score += RESOLVED_MEDIA_WEIGHT
    score += min(USAGE_CAP, max(0, record.usage_count or 0))
    if record.primary_image_url:
        score += IMAGE_WEIGHT
    if record.video_url:
        score += VIDEO_WEIGHT
    return score


def rank_records(
    records: Iterable[ExerciseRecord],
    resolved_owner_ids: AbstractSet[str],
) -> List[Tuple[ExerciseRecord, int]]:
    """
    Sort records best-first.

    Equal scores fall back to record id ascending so the order never depends
    on input order.
    """
    scored = [(r, score_record(r, r.id in resolved_owner_ids)) for r in records]
    scored.sort(key=lambda pair: (-pair[1], pair[0].id))
    return scored


__all__ = [
    "score_record",
    "rank_records",
    "CURATED_WEIGHT",
    "TRUSTED_SOURCE_WEIGHT",
    "RESOLVED_MEDIA_WEIGHT",
    "USAGE_CAP",
    "IMAGE_WEIGHT",
    "VIDEO_WEIGHT",
]
