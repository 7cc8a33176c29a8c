"""
Clusterer - Group active records that look like the same exercise.

Cluster key = normalized name + "|" + lowercased body part. Records with no
body part on both sides share a key; that over-merges now and then and is
accepted.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from catalog_dedup.catalog.models import ExerciseRecord


@dataclass
class MergeCluster:
    """Transient group of record ids sharing a cluster key."""
    key: str
    record_ids: List[str] = field(default_factory=list)

    @property
    def actionable(self) -> bool:
        return len(self.record_ids) >= 2

    def to_dict(self) -> Dict[str, object]:
        return {"key": self.key, "record_ids": self.record_ids}


def cluster_records(records: Iterable[ExerciseRecord]) -> List[MergeCluster]:
    """
    Cluster active records.

    Inactive records are never input, so merged duplicates cannot come back.
    Output is ordered by key with member ids sorted; singletons are dropped.
    """
    groups: Dict[str, List[str]] = defaultdict(list)
    for record in records:
        if not record.active:
            continue
        groups[record.cluster_key].append(record.id)

    return [
        MergeCluster(key=key, record_ids=sorted(ids))
        for key, ids in sorted(groups.items())
        if len(ids) >= 2
    ]


__all__ = [
    "MergeCluster",
    "cluster_records",
]
