"""
Apply Gate - Safety gate for catalog mutations.

Two conditions must hold before any phase writes to the store:
1. Soft gate: the run was started with --apply (vs the default --dry-run)
2. Hard gate: CATALOG_APPLY_ENABLED=true in the environment

Mode controls intent, the env var controls capability, so a wrong flag in
a scheduled job cannot mutate the catalog on its own.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

APPLY_ENABLED_VAR = "CATALOG_APPLY_ENABLED"


class ApplyGateError(Exception):
    """Raised when apply gate blocks a mutation."""

    def __init__(self, message: str, gate_type: str = "env_var"):
        super().__init__(message)
        self.gate_type = gate_type


def check_apply_gate() -> bool:
    """True if the env gate allows mutations."""
    enabled = os.environ.get(APPLY_ENABLED_VAR, "").lower() == "true"

    if not enabled:
        logger.warning(
            "Apply gate check: BLOCKED (%s is not set to 'true')",
            APPLY_ENABLED_VAR,
        )

    return enabled


def require_all_gates(dry_run: bool) -> None:
    """
    Check all gates before a run.

    Raises:
        ApplyGateError: If --apply was requested but the env gate is off
    """
    if dry_run:
        logger.info("Dry-run mode - no mutations will be applied")
        return

    if not check_apply_gate():
        raise ApplyGateError(
            f"Apply mode blocked. Set {APPLY_ENABLED_VAR}=true to enable catalog mutations.",
            gate_type="env_var",
        )

    logger.info("All apply gates passed - mutations allowed")


__all__ = [
    "ApplyGateError",
    "check_apply_gate",
    "require_all_gates",
    "APPLY_ENABLED_VAR",
]
