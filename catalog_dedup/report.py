"""
Run Report - Counts and failed identifiers for every phase of a run.

Every phase returns a PhaseResult with succeeded / skipped / failed items;
RunReport aggregates them with the headline numbers (clusters found,
records merged, aliases added, records pruned, assets linked, assets
unresolved).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PhaseResult:
    """Outcome of one phase."""
    phase: str
    succeeded: List[str] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    aborted: Optional[Dict[str, Any]] = None
    unprocessed: List[str] = field(default_factory=list)
    change_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failed and self.aborted is None

    def add_skip(self, item_id: str, code: str, message: str = "") -> None:
        self.skipped.append({"id": item_id, "code": code, "message": message})

    def add_failure(self, item_id: str, code: str, message: str = "") -> None:
        self.failed.append({"id": item_id, "code": code, "message": message})

    def failed_ids(self) -> List[str]:
        return [f["id"] for f in self.failed] + list(self.unprocessed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "succeeded_count": len(self.succeeded),
            "skipped_count": len(self.skipped),
            "failed_count": len(self.failed),
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "aborted": self.aborted,
            "unprocessed": self.unprocessed,
            "change_id": self.change_id,
        }


@dataclass
class RunReport:
    """Aggregate report for a pipeline run."""
    run_id: str
    dry_run: bool = True
    clusters_found: int = 0
    records_merged: int = 0
    aliases_added: int = 0
    records_pruned: int = 0
    assets_linked: int = 0
    assets_unresolved: int = 0
    invalid_records: List[Dict[str, Any]] = field(default_factory=list)
    phases: Dict[str, PhaseResult] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def add_phase(self, result: PhaseResult) -> PhaseResult:
        self.phases[result.phase] = result
        return result

    @property
    def ok(self) -> bool:
        return all(p.ok for p in self.phases.values())

    @property
    def aborted(self) -> bool:
        return any(p.aborted is not None for p in self.phases.values())

    def exit_code(self) -> int:
        """0 on success, 1 when a batch aborted or any item failed."""
        return 0 if self.ok else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "mode": "dry_run" if self.dry_run else "apply",
            "clusters_found": self.clusters_found,
            "records_merged": self.records_merged,
            "aliases_added": self.aliases_added,
            "records_pruned": self.records_pruned,
            "assets_linked": self.assets_linked,
            "assets_unresolved": self.assets_unresolved,
            "invalid_records": self.invalid_records,
            "phases": {name: p.to_dict() for name, p in self.phases.items()},
            "started_at": self.started_at.isoformat(),
            "ok": self.ok,
        }

    def write_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)
        logger.info("Run report written to %s", path)


def log_event(event: str, run_id: Optional[str] = None, **extra: Any) -> None:
    """
    Log a structured event.

    Uses JSON for Cloud Logging compatibility.
    """
    record: Dict[str, Any] = {
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if run_id:
        record["run_id"] = run_id
    record.update(extra)
    logger.info(json.dumps(record, default=str))


__all__ = [
    "PhaseResult",
    "RunReport",
    "log_event",
]
