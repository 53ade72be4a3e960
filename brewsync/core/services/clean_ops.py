"""
Clean operations — remove packages that are no longer wanted.

Thin service over ``ConvergenceDiffer`` and ``ConvergenceExecutor`` so
the CLI can preview the plan, ask for confirmation, then apply it.
"""

from __future__ import annotations

import logging
from typing import Callable

from brewsync.adapters.registry import AdapterRegistry
from brewsync.core.engine.convergence import (
    ConvergenceDiffer,
    ConvergenceExecutor,
    ConvergencePlan,
    ConvergenceResult,
)
from brewsync.core.models.package import JobOutcome
from brewsync.core.models.state import DesiredState

logger = logging.getLogger(__name__)


def plan_clean(desired: DesiredState, registry: AdapterRegistry) -> ConvergencePlan:
    """Compute what would be removed. Always queries live state.

    Raises:
        AdapterError: brew could not list installed packages.
    """
    return ConvergenceDiffer(registry).plan(desired)


def apply_clean(
    plan: ConvergencePlan,
    registry: AdapterRegistry,
    *,
    dry_run: bool = False,
    on_outcome: Callable[[JobOutcome], None] | None = None,
) -> ConvergenceResult:
    """Remove every item in ``plan``; a dry run touches nothing."""
    result = ConvergenceExecutor(registry, on_outcome=on_outcome).execute(plan, dry_run=dry_run)
    if result.error is not None:
        logger.warning("%d package(s) failed to remove", result.total_failed)
    return result
