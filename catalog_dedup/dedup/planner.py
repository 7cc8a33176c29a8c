"""
Merge Planner - Turn clusters into merge plans without touching the catalog.

Canonical = best-ranked active member (see scorer.rank_records for the
tie-break); duplicates = the rest. Plans are plain data so a dry-run can
report them for human review.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from catalog_dedup.catalog.snapshot import CatalogSnapshot
from catalog_dedup.dedup.clusterer import MergeCluster
from catalog_dedup.dedup.scorer import rank_records
from catalog_dedup.errors import InvariantViolation
from catalog_dedup.report import PhaseResult

logger = logging.getLogger(__name__)


@dataclass
class MergePlan:
    """Merge duplicates into canonical. Never mutates state itself."""
    canonical_id: str
    duplicate_ids: List[str]
    cluster_key: str = ""
    scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canonical_id": self.canonical_id,
            "duplicate_ids": self.duplicate_ids,
            "cluster_key": self.cluster_key,
            "scores": self.scores,
        }


class MergePlanner:
    """Read-only planner over a snapshot."""

    def __init__(self, snapshot: CatalogSnapshot):
        self.snapshot = snapshot

    def plan_cluster(self, cluster: MergeCluster) -> MergePlan:
        """
        Plan one cluster.

        Raises:
            InvariantViolation: Fewer than two active members remain
        """
        members = [
            self.snapshot.records[rid]
            for rid in dict.fromkeys(cluster.record_ids)
            if rid in self.snapshot.records and self.snapshot.records[rid].active
        ]
        if len(members) < 2:
            raise InvariantViolation(
                f"Cluster {cluster.key!r} collapsed to {len(members)} active member(s)"
            )

        ranked = rank_records(members, self.snapshot.resolved_media_owner_ids())
        canonical, _ = ranked[0]
        return MergePlan(
            canonical_id=canonical.id,
            duplicate_ids=[r.id for r, _ in ranked[1:]],
            cluster_key=cluster.key,
            scores={r.id: s for r, s in ranked},
        )

    def plan(self, clusters: Iterable[MergeCluster]) -> Tuple[List[MergePlan], PhaseResult]:
        """Plan every cluster; a bad cluster is skipped, the rest proceed."""
        result = PhaseResult(phase="plan")
        plans: List[MergePlan] = []
        for cluster in clusters:
            try:
                plan = self.plan_cluster(cluster)
            except InvariantViolation as e:
                logger.warning("Skipping cluster %s: %s", cluster.key, e)
                result.add_skip(cluster.key, e.code, str(e))
                continue
            plans.append(plan)
            result.succeeded.append(cluster.key)
            logger.debug(
                "Cluster %s: canonical=%s duplicates=%s",
                cluster.key, plan.canonical_id, plan.duplicate_ids,
            )
        return plans, result


__all__ = [
    "MergePlan",
    "MergePlanner",
]
