"""Media coverage report: how many active exercises have a primary image."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from catalog_dedup import config
from catalog_dedup.catalog.store import CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class CoverageReport:
    total_active: int = 0
    with_image: int = 0
    missing: List[str] = field(default_factory=list)

    @property
    def without_image(self) -> int:
        return self.total_active - self.with_image

    @property
    def coverage_pct(self) -> float:
        if not self.total_active:
            return 0.0
        return round(100.0 * self.with_image / self.total_active, 1)

    def to_dict(self, limit: int = config.MAX_LISTED_ITEMS) -> Dict[str, Any]:
        return {
            "total_active": self.total_active,
            "with_image": self.with_image,
            "without_image": self.without_image,
            "coverage_pct": self.coverage_pct,
            "missing": self.missing[:limit],
            "missing_truncated": len(self.missing) > limit,
        }


def compute_coverage(store: CatalogStore) -> CoverageReport:
    """Count active records with and without a primary image."""
    report = CoverageReport()
    for record in store.query_records(active=True):
        report.total_active += 1
        if record.primary_image_url:
            report.with_image += 1
        else:
            report.missing.append(record.name)
    report.missing.sort(key=str.casefold)
    logger.info(
        "Coverage: %d/%d active exercises have an image (%.1f%%)",
        report.with_image, report.total_active, report.coverage_pct,
    )
    return report


__all__ = [
    "CoverageReport",
    "compute_coverage",
]
