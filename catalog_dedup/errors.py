"""
Error kinds for the dedup engine.

Recovery is per item: callers catch these around a single record, cluster or
plan, count the outcome and continue with the rest.

- NotFoundError: expected record absent -> skip, count, continue
- ValidationError: malformed input row -> skip, count, never aborts the run
- TransientIOError: network/filesystem failure -> retried, then the batch is
  abandoned (BatchAbortedError)
- InvariantViolation: plan or cluster breaks an engine invariant -> that plan
  is skipped and logged
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class CatalogError(Exception):
    """Base class for all engine errors."""

    code = "CATALOG_ERROR"

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": str(self),
            "record_id": self.record_id,
        }


class NotFoundError(CatalogError):
    """An expected record or asset is absent from the snapshot or store."""

    code = "NOT_FOUND"


class ValidationError(CatalogError):
    """A record document or mapping row is malformed."""

    code = "VALIDATION_FAILED"


class TransientIOError(CatalogError):
    """Network or filesystem failure that may succeed on retry."""

    code = "TRANSIENT_IO"


class InvariantViolation(CatalogError):
    """A cluster or plan would break an engine invariant."""

    code = "INVARIANT_VIOLATION"


class BatchAbortedError(CatalogError):
    """Too many consecutive failures inside one batch."""

    code = "BATCH_ABORTED"

    def __init__(
        self,
        message: str,
        batch_index: int,
        abandoned_ids: Sequence[str] = (),
    ):
        super().__init__(message)
        self.batch_index = batch_index
        self.abandoned_ids: List[str] = list(abandoned_ids)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["batch_index"] = self.batch_index
        data["abandoned_ids"] = self.abandoned_ids
        return data


__all__ = [
    "CatalogError",
    "NotFoundError",
    "ValidationError",
    "TransientIOError",
    "InvariantViolation",
    "BatchAbortedError",
]
