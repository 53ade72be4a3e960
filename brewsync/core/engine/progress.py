"""
Progress aggregator — single-consumer tally of install progress.

Workers never touch counters. They push ``start``/``finish`` messages
into a ``queue.Queue``; one consumer thread drains it, updates the
tallies and forwards a ``ProgressEvent`` to the listener.

Ordering
────────
- Messages from one worker are FIFO, so for any job the ``start``
  event always precedes its ``finish`` event.
- Across jobs the order is whatever the workers produce.

Rendering is the listener's business. The aggregator only guarantees
"now working on X" before X starts and "X finished, bucket=..." after.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Literal

from brewsync.core.models.package import Category, InstallJob, JobOutcome

logger = logging.getLogger(__name__)

ProgressListener = Callable[["ProgressEvent"], None]

_STOP = object()


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update, with tallies as of this event."""

    phase: Literal["start", "finish"]
    name: str
    category: Category
    total: int
    completed: int
    succeeded: int
    failed: int
    skipped: int
    bucket: str = ""            # succeeded | failed | skipped (finish only)
    reason: str = ""
    duration_ms: int = 0


class ProgressAggregator:
    """Owns the progress tallies; fed through a concurrent-safe queue.

    Usage::

        with ProgressAggregator(total=len(jobs), listener=render) as progress:
            progress.job_started(job)
            ...
            progress.job_finished(job, outcome)
    """

    def __init__(
        self,
        total: int,
        listener: ProgressListener | None = None,
        *,
        skipped: int = 0,
    ) -> None:
        self.total = total
        self._listener = listener
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self.completed = 0
        self.succeeded = 0
        self.failed = 0
        self.skipped = skipped
        self.events: list[ProgressEvent] = []

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> ProgressAggregator:
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._consume, name="brewsync-progress", daemon=True,
            )
            self._thread.start()
        return self

    def close(self) -> None:
        """Flush every pending message and stop the consumer."""
        self._queue.put(_STOP)
        if self._thread is None:
            # never started: drain on the calling thread
            self._consume()
            return
        self._thread.join()
        self._thread = None

    def __enter__(self) -> ProgressAggregator:
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Producers (any thread) ──────────────────────────────────

    def job_started(self, job: InstallJob) -> None:
        self._queue.put(("start", job, None))

    def job_finished(self, job: InstallJob, outcome: JobOutcome) -> None:
        self._queue.put(("finish", job, outcome))

    # ── Consumer (one thread) ───────────────────────────────────

    def tallies(self) -> dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }

    def _consume(self) -> None:
        while True:
            message = self._queue.get()
            if message is _STOP:
                return
            phase, job, outcome = message
            if phase == "finish":
                self.completed += 1
                bucket = outcome.bucket
                if bucket == "skipped":
                    self.skipped += 1
                elif bucket == "succeeded":
                    self.succeeded += 1
                else:
                    self.failed += 1
            event = ProgressEvent(
                phase=phase,
                name=job.name,
                category=job.category,
                total=self.total,
                completed=self.completed,
                succeeded=self.succeeded,
                failed=self.failed,
                skipped=self.skipped,
                bucket=outcome.bucket if outcome else "",
                reason=outcome.reason if outcome else "",
                duration_ms=outcome.duration_ms if outcome else 0,
            )
            self.events.append(event)
            if self._listener is not None:
                try:
                    self._listener(event)
                except Exception:
                    logger.exception("Progress listener failed on %s", job)
