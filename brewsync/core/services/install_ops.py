"""
Install operations — bring the machine up to the desired state.

Channel-independent: the CLI (and tests) call ``install_packages`` and
render the returned ``InstallReport`` however they like.

Flow:
    dry-run?  → report the plan, run nothing
    taps      → sequential, fail-soft
    query     → skip anything already installed
    preflight → network + disk, abort before any install on failure
    formulae  → ConcurrentInstaller (pool), through RetryPolicy
    casks     → ConcurrentInstaller (pool of 1, installers may prompt)
    second pass for failed formulae/casks
    npm       → batch, then per-package retry fallback
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from brewsync.adapters.brew import BrewAdapter
from brewsync.adapters.npm import NpmAdapter
from brewsync.adapters.registry import AdapterRegistry
from brewsync.core.config.settings import Settings
from brewsync.core.engine.installer import ConcurrentInstaller
from brewsync.core.engine.progress import ProgressAggregator, ProgressListener
from brewsync.core.models.package import (
    CATEGORY_ORDER,
    Category,
    ErrorKind,
    InstallJob,
    JobOutcome,
)
from brewsync.core.models.state import DesiredState
from brewsync.core.reliability.retry_policy import RetryPolicy, batch_then_fallback
from brewsync.core.services.preflight import PreflightReport, run_preflight

logger = logging.getLogger(__name__)

ESTIMATED_SECONDS = {
    Category.FORMULA: 15,
    Category.CASK: 30,
    Category.NPM: 5,
}

# Failures a second pass cannot fix.
_FINAL = frozenset({
    ErrorKind.NOT_FOUND,
    ErrorKind.CANCELLED,
    ErrorKind.ADAPTER_UNAVAILABLE,
    ErrorKind.PERMISSION_DENIED,
    ErrorKind.DISK_FULL,
})


@dataclass
class InstallReport:
    """Every outcome of one install run."""

    outcomes: list[JobOutcome] = field(default_factory=list)
    dry_run: bool = False
    planned: dict[Category, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded and not o.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def failures_by_category(self) -> dict[Category, list[tuple[str, str]]]:
        """Failed ``(name, reason)`` pairs grouped by category."""
        grouped: dict[Category, list[tuple[str, str]]] = {}
        for category in CATEGORY_ORDER:
            items = [(o.name, o.reason) for o in self.outcomes if o.failed and o.category == category]
            if items:
                grouped[category] = sorted(items)
        return grouped

    def installed(self, category: Category) -> list[str]:
        return sorted(o.name for o in self.outcomes if o.category == category and o.succeeded)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "dry_run": self.dry_run,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "planned": {str(c): names for c, names in self.planned.items()},
            "failures": {
                str(c): [{"name": n, "reason": r} for n, r in items]
                for c, items in self.failures_by_category().items()
            },
            "warnings": list(self.warnings),
        }


def estimate_install_minutes(formulae: int, casks: int, npm: int) -> int:
    """Rough wall-clock estimate, rounded up to whole minutes (min 1)."""
    seconds = (
        formulae * ESTIMATED_SECONDS[Category.FORMULA]
        + casks * ESTIMATED_SECONDS[Category.CASK]
        + npm * ESTIMATED_SECONDS[Category.NPM]
    )
    return max(1, -(-seconds // 60))


def install_packages(
    desired: DesiredState,
    registry: AdapterRegistry,
    *,
    settings: Settings | None = None,
    dry_run: bool = False,
    listener: ProgressListener | None = None,
    cancel: threading.Event | None = None,
    retry_policy: RetryPolicy | None = None,
    preflight: Callable[[int], PreflightReport] = run_preflight,
) -> InstallReport:
    """Install everything in ``desired`` that is not installed yet.

    Args:
        desired: Target state.
        registry: Adapter registry (brew + npm).
        settings: Pool size, retry and pre-flight tunables.
        dry_run: Report the plan; spawn no subprocess at all.
        listener: Receives ``ProgressEvent``s.
        cancel: Set it to stop dispatching further work.
        retry_policy: Overrides the policy built from ``settings``.
        preflight: Injected for tests.

    Raises:
        PreflightError: Network or disk check failed; nothing installed.
        AdapterError: brew could not list installed packages.
    """
    settings = settings or Settings()
    cancel = cancel or threading.Event()
    policy = retry_policy or RetryPolicy(
        max_attempts=settings.max_attempts,
        backoff_unit=settings.backoff_seconds,
    )
    report = InstallReport(dry_run=dry_run)

    if dry_run:
        for category in (Category.TAP, Category.FORMULA, Category.CASK, Category.NPM):
            names = sorted(desired.for_category(category))
            if names:
                report.planned[category] = names
        logger.info("[dry-run] would install %d package(s)", desired.total)
        return report

    brew = registry.for_category(Category.FORMULA)
    npm = registry.for_category(Category.NPM)

    # ── Taps ────────────────────────────────────────────────────
    for tap in sorted(desired.taps):
        outcome = registry.for_category(Category.TAP).install_one(tap, Category.TAP, cancel=cancel)
        if outcome.failed:
            logger.warning("Failed to tap %s: %s", tap, outcome.reason)
        report.outcomes.append(outcome)

    # ── Skip what is already there ──────────────────────────────
    pending: dict[Category, list[str]] = {}
    for category in (Category.FORMULA, Category.CASK):
        have = brew.list_installed(category)
        pending[category] = _split_pending(desired.for_category(category), have, category, report)

    if desired.npm:
        if npm.is_available():
            pending[Category.NPM] = _split_pending(
                desired.npm, npm.list_installed(Category.NPM), Category.NPM, report,
            )
            if isinstance(npm, NpmAdapter):
                report.warnings.extend(npm.node_requirement_warnings(pending[Category.NPM]))
        else:
            msg = "npm not found; skipping npm packages (install Node.js first)"
            logger.warning(msg)
            report.warnings.append(msg)
            for name in sorted(desired.npm):
                report.outcomes.append(JobOutcome.skip(name, Category.NPM, reason="npm not available"))
            pending[Category.NPM] = []
    else:
        pending[Category.NPM] = []

    todo = sum(len(v) for v in pending.values())
    if todo == 0:
        logger.info("All packages already installed")
        return report

    logger.info(
        "Installing %d package(s), estimated ~%d min",
        todo,
        estimate_install_minutes(
            len(pending[Category.FORMULA]), len(pending[Category.CASK]), len(pending[Category.NPM]),
        ),
    )

    # ── Pre-flight (aborts) ─────────────────────────────────────
    if not settings.skip_preflight:
        preflight_report = preflight(todo)
        report.warnings.extend(preflight_report.warnings)
    if isinstance(brew, BrewAdapter) and (pending[Category.FORMULA] or pending[Category.CASK]):
        if not brew.update_index():
            logger.warning("brew update failed, continuing anyway...")

    # ── Install ─────────────────────────────────────────────────
    with ProgressAggregator(total=todo, listener=listener, skipped=report.skipped) as progress:
        brew_outcomes: list[JobOutcome] = []
        for category, pool_size in (
            (Category.FORMULA, settings.workers),
            (Category.CASK, 1),
        ):
            jobs = [InstallJob(name=n, category=category) for n in pending[category]]
            installer = ConcurrentInstaller(
                registry, pool_size=pool_size, retry_policy=policy, progress=progress,
            )
            brew_outcomes.extend(installer.run(jobs, cancel=cancel))

        if pending[Category.NPM]:
            if cancel.is_set():
                npm_outcomes = [
                    JobOutcome.failure(n, Category.NPM, ErrorKind.CANCELLED)
                    for n in pending[Category.NPM]
                ]
            else:
                npm_outcomes = batch_then_fallback(
                    npm, pending[Category.NPM], policy, progress=progress, cancel=cancel,
                )
        else:
            npm_outcomes = []

    report.outcomes.extend(_second_pass(brew_outcomes, registry, cancel))
    report.outcomes.extend(npm_outcomes)

    if report.failed:
        logger.warning("%d package(s) failed to install", report.failed)
    return report


def _split_pending(
    wanted: set[str],
    have: set[str],
    category: Category,
    report: InstallReport,
) -> list[str]:
    for name in sorted(wanted & have):
        report.outcomes.append(JobOutcome.skip(name, category, reason="already installed"))
    return sorted(wanted - have)


def _second_pass(
    outcomes: list[JobOutcome],
    registry: AdapterRegistry,
    cancel: threading.Event,
) -> list[JobOutcome]:
    """One more plain attempt for brew failures that might be transient."""
    retry = [o for o in outcomes if o.failed and o.error_kind not in _FINAL]
    if not retry or cancel.is_set():
        return outcomes

    logger.info("Retrying %d failed package(s)...", len(retry))
    final: dict[tuple[str, Category], JobOutcome] = {}
    for outcome in retry:
        if cancel.is_set():
            break
        again = registry.for_category(outcome.category).install_one(
            outcome.name, outcome.category, cancel=cancel,
        )
        if again.succeeded:
            logger.info("%s: retry succeeded", outcome.name)
            final[(outcome.name, outcome.category)] = again.model_copy(
                update={"attempts": outcome.attempts + 1}
            )
        else:
            logger.info("%s: still failed", outcome.name)

    return [final.get((o.name, o.category), o) for o in outcomes]
