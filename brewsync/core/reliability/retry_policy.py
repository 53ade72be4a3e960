"""
Retry policy — bounded retries with linear backoff for single installs.

Also implements npm's batch-then-fallback strategy: one batched
``npm install -g`` for everything, and only if that fails, a
per-package retry loop for whatever is still missing.

Backoff is linear: attempt N waits ``N * unit`` seconds before the
next try. Only failures classified as retryable are retried.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable

from brewsync.core.errors import AdapterError
from brewsync.core.models.package import Category, ErrorKind, InstallJob, JobOutcome
from brewsync.core.services.error_classifier import classify, is_retryable

if TYPE_CHECKING:
    from brewsync.adapters.npm import NpmAdapter
    from brewsync.core.engine.progress import ProgressAggregator

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_UNIT = 2.0


class RetryPolicy:
    """Retry a single install while its failures stay retryable.

    Args:
        max_attempts: Total tries, including the first.
        backoff_unit: Seconds multiplied by the attempt number.
        sleep: Injected for tests; ignored when a cancel event is given
            (the event's ``wait`` is used so cancellation interrupts it).
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_unit: float = DEFAULT_BACKOFF_UNIT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_unit = backoff_unit
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        return attempt * self.backoff_unit

    def attempt(
        self,
        install_fn: Callable[[], JobOutcome],
        cancel: threading.Event | None = None,
    ) -> JobOutcome:
        """Run ``install_fn`` until it succeeds or stops being retryable.

        Returns:
            The first success; a non-retryable failure as-is; or a
            MAX_RETRIES_EXCEEDED failure once every attempt failed with
            a retryable kind.
        """
        outcome: JobOutcome | None = None
        elapsed_ms = 0
        for attempt in range(1, self.max_attempts + 1):
            outcome = install_fn()
            elapsed_ms += outcome.duration_ms
            if outcome.succeeded:
                return outcome.model_copy(update={"attempts": attempt, "duration_ms": elapsed_ms})

            kind = outcome.error_kind
            if kind is None or kind is ErrorKind.UNKNOWN:
                kind = classify(outcome.detail).kind
            if not is_retryable(kind):
                return outcome.model_copy(update={"attempts": attempt, "duration_ms": elapsed_ms})

            if attempt < self.max_attempts:
                delay = self.delay_for(attempt)
                logger.info(
                    "%s failed (%s), retry %d/%d in %.1fs",
                    outcome.name, outcome.reason, attempt + 1, self.max_attempts, delay,
                )
                if cancel is not None:
                    if cancel.wait(delay):
                        return JobOutcome.failure(
                            outcome.name, outcome.category, ErrorKind.CANCELLED,
                            attempts=attempt, duration_ms=elapsed_ms,
                        )
                else:
                    self._sleep(delay)

        assert outcome is not None
        logger.warning("%s: giving up after %d attempts", outcome.name, self.max_attempts)
        return JobOutcome.failure(
            outcome.name,
            outcome.category,
            ErrorKind.MAX_RETRIES_EXCEEDED,
            reason=f"max retries exceeded ({outcome.reason})",
            detail=outcome.detail,
            attempts=self.max_attempts,
            duration_ms=elapsed_ms,
        )


def batch_then_fallback(
    adapter: NpmAdapter,
    names: list[str],
    policy: RetryPolicy,
    progress: ProgressAggregator | None = None,
    cancel: threading.Event | None = None,
) -> list[JobOutcome]:
    """Install npm packages in one batch, falling back to one-by-one.

    1. ``npm install -g a b c ...`` — if it succeeds, done.
    2. Otherwise re-query the installed set: some packages may have
       landed even though the batch call failed.
    3. Retry only the still-missing packages, sequentially, each through
       ``policy.attempt``.
    """
    if not names:
        return []

    batch = adapter.install_batch(names, cancel=cancel)
    if batch.ok:
        logger.info("npm batch installed %d packages", len(names))
        outcomes = [
            JobOutcome.success(n, Category.NPM, duration_ms=batch.duration_ms)
            for n in names
        ]
        if progress is not None:
            for outcome in outcomes:
                job = InstallJob(name=outcome.name, category=Category.NPM)
                progress.job_started(job)
                progress.job_finished(job, outcome)
        return outcomes

    logger.warning(
        "npm batch install failed (%s), falling back to sequential",
        classify(batch.output).reason,
    )
    try:
        now_installed = adapter.list_installed(Category.NPM)
    except AdapterError as e:
        logger.warning("npm list after failed batch: %s; retrying every package", e)
        now_installed = set()

    outcomes: list[JobOutcome] = []
    for name in names:
        job = InstallJob(name=name, category=Category.NPM)
        if progress is not None:
            progress.job_started(job)

        if name in now_installed:
            outcome = JobOutcome.success(name, Category.NPM, reason="installed by batch")
        elif cancel is not None and cancel.is_set():
            outcome = JobOutcome.failure(name, Category.NPM, ErrorKind.CANCELLED)
        else:
            outcome = policy.attempt(
                lambda n=name: adapter.install_one(n, Category.NPM, cancel=cancel),
                cancel=cancel,
            )

        if progress is not None:
            progress.job_finished(job, outcome)
        outcomes.append(outcome)
    return outcomes
