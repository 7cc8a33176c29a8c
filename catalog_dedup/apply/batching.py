"""
Batch Runner - Bounded batches with retries and a failure threshold.

Per item:
- handler returns True  -> succeeded
- handler returns False -> skipped as NO_CHANGE
- handler returns a str -> skipped with that code
- NotFoundError / ValidationError / InvariantViolation -> skipped with reason
- TransientIOError -> retried max_retries times with backoff, then failed
- any other exception -> failed (logged with traceback)

max_consecutive_failures failures in a row inside one batch abort the phase:
the remaining items are reported as unprocessed. Completed batches are not
rolled back.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Sequence, TypeVar, Union

from catalog_dedup import config
from catalog_dedup.errors import (
    BatchAbortedError,
    InvariantViolation,
    NotFoundError,
    TransientIOError,
    ValidationError,
)
from catalog_dedup.report import PhaseResult

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")
Outcome = Union[bool, str]

SKIPPABLE_ERRORS = (NotFoundError, ValidationError, InvariantViolation)


class BatchRunner:
    """Runs a per-item handler over items in bounded batches."""

    def __init__(
        self,
        batch_size: int = config.BATCH_SIZE,
        max_retries: int = config.MAX_RETRIES,
        max_consecutive_failures: int = config.MAX_CONSECUTIVE_FAILURES,
        backoff_factor: float = config.BACKOFF_FACTOR,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.max_consecutive_failures = max_consecutive_failures
        self.backoff_factor = backoff_factor
        self._sleep_fn = sleep

    def _sleep(self, attempt: int) -> None:
        delay = self.backoff_factor * (2 ** attempt)
        jitter = 0.05 * delay
        self._sleep_fn(delay + jitter)

    def call(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """
        Call fn, retrying TransientIOError with backoff.

        Used for per-item handlers and for whole-phase reads such as the
        catalog fetch and folder listings. Re-raises the last error once
        retries are exhausted.
        """
        last_error: Optional[TransientIOError] = None
        for attempt in range(self.max_retries + 1):
            try:
                return fn(*args, **kwargs)
            except TransientIOError as e:
                last_error = e
                logger.warning("Transient failure (attempt %d/%d): %s",
                               attempt + 1, self.max_retries + 1, e)
            if attempt < self.max_retries:
                self._sleep(attempt)
        raise last_error

    def run(
        self,
        phase: str,
        items: Sequence[T],
        item_id: Callable[[T], str],
        handler: Callable[[T], Outcome],
        result: Optional[PhaseResult] = None,
    ) -> PhaseResult:
        result = result or PhaseResult(phase=phase)
        items = list(items)

        for batch_index, start in enumerate(range(0, len(items), self.batch_size)):
            batch = items[start:start + self.batch_size]
            consecutive_failures = 0
            logger.debug("%s: batch %d (%d items)", phase, batch_index, len(batch))

            for offset, item in enumerate(batch):
                ident = item_id(item)
                try:
                    outcome = self.call(handler, item)
                    if outcome is True:
                        result.succeeded.append(ident)
                    else:
                        result.add_skip(ident, outcome or "NO_CHANGE")
                    consecutive_failures = 0
                    continue
                except SKIPPABLE_ERRORS as e:
                    logger.info("%s: skipping %s: %s", phase, ident, e)
                    result.add_skip(ident, e.code, str(e))
                    consecutive_failures = 0
                    continue
                except TransientIOError as e:
                    logger.error("%s: %s failed after retries: %s", phase, ident, e)
                    result.add_failure(ident, e.code, str(e))
                except Exception as e:
                    logger.exception("%s: %s failed: %s", phase, ident, e)
                    result.add_failure(ident, type(e).__name__, str(e))

                consecutive_failures += 1
                if consecutive_failures >= self.max_consecutive_failures:
                    remaining = [item_id(i) for i in items[start + offset + 1:]]
                    error = BatchAbortedError(
                        f"{phase}: batch {batch_index} aborted after "
                        f"{consecutive_failures} consecutive failures",
                        batch_index=batch_index,
                        abandoned_ids=remaining,
                    )
                    logger.error("%s", error)
                    result.aborted = error.to_dict()
                    result.unprocessed = remaining
                    return result

        return result


__all__ = [
    "BatchRunner",
    "SKIPPABLE_ERRORS",
]
