"""
Concurrent installer — bounded worker pool over install jobs.

W = min(pool_size, len(jobs)) worker threads pull from one shared job
queue. Per job a worker reports "start", installs (through the retry
policy when one is configured), reports "finish" and hands the outcome
to a result queue. The calling thread is the only consumer of that
result queue.

Fail-soft: one job's failure never stops its siblings, and ``run``
never raises because of a job. Callers inspect the outcome list.

Cancellation: pass a ``threading.Event``. Once set, jobs not yet
started finish immediately as CANCELLED and running subprocesses are
terminated by the command runner. Ctrl-C in the calling thread sets
the event, waits for workers to wind down, then re-raises.
"""

from __future__ import annotations

import logging
import queue
import threading
import time

from brewsync.adapters.registry import AdapterRegistry
from brewsync.core.engine.progress import ProgressAggregator
from brewsync.core.models.package import ErrorKind, InstallJob, JobOutcome
from brewsync.core.reliability.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 4

# Join granularity; keeps Ctrl-C responsive in the calling thread.
_JOIN_INTERVAL = 0.1


class ConcurrentInstaller:
    """Run install jobs on a fixed-size thread pool.

    Args:
        registry: Resolves each job's category to an adapter.
        pool_size: Upper bound on worker threads.
        retry_policy: Wraps every install when given.
        progress: Receives start/finish messages; optional.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        pool_size: int = DEFAULT_POOL_SIZE,
        retry_policy: RetryPolicy | None = None,
        progress: ProgressAggregator | None = None,
    ):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self._registry = registry
        self.pool_size = pool_size
        self._retry_policy = retry_policy
        self._progress = progress
        self.workers_spawned = 0

    def run(
        self,
        jobs: list[InstallJob],
        cancel: threading.Event | None = None,
    ) -> list[JobOutcome]:
        """Install every job; return one outcome per job."""
        self.workers_spawned = 0
        if not jobs:
            return []

        cancel = cancel or threading.Event()
        job_queue: queue.Queue[InstallJob] = queue.Queue()
        for job in jobs:
            job_queue.put(job)
        results: queue.Queue[JobOutcome] = queue.Queue()

        workers = [
            threading.Thread(
                target=self._worker,
                args=(job_queue, results, cancel),
                name=f"brewsync-worker-{i}",
                daemon=True,
            )
            for i in range(min(self.pool_size, len(jobs)))
        ]
        self.workers_spawned = len(workers)
        logger.debug("Installing %d jobs on %d workers", len(jobs), len(workers))
        for worker in workers:
            worker.start()

        try:
            self._join(workers)
        except KeyboardInterrupt:
            logger.warning("Interrupted: cancelling remaining installs")
            cancel.set()
            self._join(workers)
            raise

        outcomes: list[JobOutcome] = []
        while not results.empty():
            outcomes.append(results.get_nowait())
        return outcomes

    # ── Workers ─────────────────────────────────────────────────

    def _worker(
        self,
        job_queue: queue.Queue[InstallJob],
        results: queue.Queue[JobOutcome],
        cancel: threading.Event,
    ) -> None:
        while True:
            try:
                job = job_queue.get_nowait()
            except queue.Empty:
                return

            if self._progress is not None:
                self._progress.job_started(job)

            if cancel.is_set():
                outcome = JobOutcome.failure(job.name, job.category, ErrorKind.CANCELLED)
            else:
                outcome = self._install(job, cancel)

            if self._progress is not None:
                self._progress.job_finished(job, outcome)
            results.put(outcome)

    def _install(self, job: InstallJob, cancel: threading.Event) -> JobOutcome:
        start = time.monotonic()
        try:
            adapter = self._registry.for_category(job.category)
            if self._retry_policy is not None:
                return self._retry_policy.attempt(
                    lambda: adapter.install_one(job.name, job.category, cancel=cancel),
                    cancel=cancel,
                )
            return adapter.install_one(job.name, job.category, cancel=cancel)
        except Exception as e:
            # Adapters should never raise, but one bad job must not kill its worker
            logger.error("Install of %s raised: %s", job, e)
            return JobOutcome.failure(
                job.name,
                job.category,
                ErrorKind.UNKNOWN,
                reason=f"unexpected error: {e}",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

    @staticmethod
    def _join(workers: list[threading.Thread]) -> None:
        for worker in workers:
            while worker.is_alive():
                worker.join(_JOIN_INTERVAL)
