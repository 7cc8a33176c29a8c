"""
Apply Package - Gated, journaled, batched mutation support.

This package provides:
- gate: apply gate (--apply plus CATALOG_APPLY_ENABLED)
- journal: change journal for audit trail
- batching: bounded batches with retries and a failure threshold
"""

from catalog_dedup.apply.gate import (
    ApplyGateError,
    check_apply_gate,
    require_all_gates,
)

from catalog_dedup.apply.journal import (
    ChangeJournal,
    new_run_id,
)

from catalog_dedup.apply.batching import BatchRunner


__all__ = [
    "ApplyGateError",
    "check_apply_gate",
    "require_all_gates",
    "ChangeJournal",
    "new_run_id",
    "BatchRunner",
]
