"""
Convergence — diff desired vs. installed, then remove the extras.

Only the removal half of convergence lives here. Adding packages is the
install flow's job (``install_ops``).

Flow:
    desired → ConvergenceDiffer.plan (live query + diff) → ConvergencePlan
            → ConvergenceExecutor.execute → ConvergenceResult
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from brewsync.adapters.registry import AdapterRegistry
from brewsync.core.errors import AdapterError, AggregateFailure
from brewsync.core.models.package import CATEGORY_ORDER, Category, JobOutcome
from brewsync.core.models.state import DesiredState, InstalledState

logger = logging.getLogger(__name__)


@dataclass
class ConvergencePlan:
    """Installed names that are no longer wanted, per category."""

    extra: dict[Category, set[str]] = field(
        default_factory=lambda: {c: set() for c in CATEGORY_ORDER}
    )

    @property
    def total(self) -> int:
        return sum(len(names) for names in self.extra.values())

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "extra": {str(c): sorted(self.extra.get(c, set())) for c in CATEGORY_ORDER},
        }


@dataclass
class ConvergenceResult:
    """What the executor removed, and what it could not."""

    removed: dict[Category, list[str]] = field(
        default_factory=lambda: {c: [] for c in CATEGORY_ORDER}
    )
    failed: dict[Category, list[str]] = field(
        default_factory=lambda: {c: [] for c in CATEGORY_ORDER}
    )
    reasons: dict[str, str] = field(default_factory=dict)
    error: AggregateFailure | None = None

    @property
    def total_removed(self) -> int:
        return sum(len(v) for v in self.removed.values())

    @property
    def total_failed(self) -> int:
        return sum(len(v) for v in self.failed.values())

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "removed": {str(c): list(self.removed.get(c, [])) for c in CATEGORY_ORDER},
            "failed": {str(c): list(self.failed.get(c, [])) for c in CATEGORY_ORDER},
            "reasons": dict(self.reasons),
        }


# ═══════════════════════════════════════════════════════════════════
#  Diff
# ═══════════════════════════════════════════════════════════════════


def diff_states(desired: DesiredState, installed: InstalledState) -> ConvergencePlan:
    """``extra[c] = installed[c] - desired[c]`` for every category."""
    plan = ConvergencePlan()
    for category in CATEGORY_ORDER:
        plan.extra[category] = installed.for_category(category) - desired.for_category(category)
    return plan


class ConvergenceDiffer:
    """Query live installed state and diff it against the desired state."""

    def __init__(self, registry: AdapterRegistry):
        self._registry = registry

    def installed_state(self, desired: DesiredState) -> InstalledState:
        """Fresh installed state; never cached between calls.

        Formulae and casks are always probed (brew is required). npm is
        probed only when it is installed, and taps only when the desired
        state names any, so an unused category costs no external call.
        """
        installed = InstalledState()

        brew = self._registry.for_category(Category.FORMULA)
        installed.formulae = brew.list_installed(Category.FORMULA)
        installed.casks = self._registry.for_category(Category.CASK).list_installed(Category.CASK)

        npm = self._registry.for_category(Category.NPM)
        if npm.is_available():
            try:
                installed.npm = npm.list_installed(Category.NPM)
            except AdapterError as e:
                logger.warning("Failed to check npm packages: %s", e)

        if desired.taps:
            try:
                installed.taps = self._registry.for_category(Category.TAP).list_installed(
                    Category.TAP
                )
            except AdapterError as e:
                logger.warning("Failed to check taps: %s", e)

        return installed

    def plan(self, desired: DesiredState) -> ConvergencePlan:
        plan = diff_states(desired, self.installed_state(desired))
        logger.info("Convergence plan: %d extra package(s)", plan.total)
        return plan


# ═══════════════════════════════════════════════════════════════════
#  Execute
# ═══════════════════════════════════════════════════════════════════


class ConvergenceExecutor:
    """Apply a removal plan one item at a time.

    Removals run one at a time.
    Fail-soft: every item of every category is attempted.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        on_outcome: Callable[[JobOutcome], None] | None = None,
    ):
        self._registry = registry
        self._on_outcome = on_outcome

    def execute(self, plan: ConvergencePlan, dry_run: bool = False) -> ConvergenceResult:
        result = ConvergenceResult()
        if dry_run:
            logger.info("[dry-run] would remove %d package(s)", plan.total)
            return result

        failures: dict[str, str] = {}
        for category in CATEGORY_ORDER:
            names = sorted(plan.extra.get(category, set()))
            if not names:
                continue
            adapter = self._registry.for_category(category)
            logger.info("Removing %d extra %s package(s)", len(names), category)
            for name in names:
                outcome = adapter.uninstall_one(name, category)
                if outcome.succeeded:
                    result.removed[category].append(name)
                else:
                    result.failed[category].append(name)
                    label = f"{category}:{name}"
                    failures[label] = outcome.reason
                    result.reasons[label] = outcome.reason
                    logger.warning("Failed to uninstall %s: %s", name, outcome.reason)
                if self._on_outcome is not None:
                    try:
                        self._on_outcome(outcome)
                    except Exception:
                        logger.exception("Outcome callback failed on %s:%s", category, name)

        if failures:
            result.error = AggregateFailure(failures, total=plan.total)
        return result
