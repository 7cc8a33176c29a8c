"""
Dedup Package - Cluster, score, plan, merge and prune.

This package provides:
- clusterer: group active records by normalized key + body part
- scorer: shared ranking used for canonical selection and pruning
- planner: MergePlan per cluster (read-only)
- merger: atomic alias/media/deactivation change sets
- pruner: active-record cap
"""

from catalog_dedup.dedup.clusterer import MergeCluster, cluster_records
from catalog_dedup.dedup.scorer import rank_records, score_record
from catalog_dedup.dedup.planner import MergePlan, MergePlanner
from catalog_dedup.dedup.merger import Merger, build_merge_change_set
from catalog_dedup.dedup.pruner import CatalogPruner


__all__ = [
    "MergeCluster",
    "cluster_records",
    "rank_records",
    "score_record",
    "MergePlan",
    "MergePlanner",
    "Merger",
    "build_merge_change_set",
    "CatalogPruner",
]
