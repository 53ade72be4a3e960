"""
Tests for the concurrent installer and the progress aggregator.
"""

import threading
import time

import pytest

from brewsync.adapters.mock import MockPackageManager
from brewsync.adapters.registry import AdapterRegistry
from brewsync.core.engine.installer import ConcurrentInstaller
from brewsync.core.engine.progress import ProgressAggregator
from brewsync.core.models.package import Category, ErrorKind, InstallJob, JobOutcome
from brewsync.core.reliability.retry_policy import RetryPolicy


def _jobs(*names, category=Category.FORMULA):
    return [InstallJob(name=n, category=category) for n in names]


class SlowManager(MockPackageManager):
    """Mock whose installs take a moment, recording peak concurrency."""

    def __init__(self, delay=0.05, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay
        self.active = 0
        self.peak = 0
        self._gauge = threading.Lock()

    def install_one(self, name, category, cancel=None):
        with self._gauge:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(self.delay)
        try:
            return super().install_one(name, category, cancel=cancel)
        finally:
            with self._gauge:
                self.active -= 1


class ExplodingManager(MockPackageManager):
    def install_one(self, name, category, cancel=None):
        if name == "boom":
            raise RuntimeError("adapter bug")
        return super().install_one(name, category, cancel=cancel)


# ── Worker pool ─────────────────────────────────────────────────────


class TestConcurrentInstaller:
    def test_zero_jobs_zero_workers(self, registry, brew_mock):
        installer = ConcurrentInstaller(registry, pool_size=4)
        assert installer.run([]) == []
        assert installer.workers_spawned == 0
        assert brew_mock.call_count == 0

    def test_workers_bounded_by_job_count(self, registry, brew_mock):
        installer = ConcurrentInstaller(registry, pool_size=4)
        outcomes = installer.run(_jobs("a", "b", "c"))
        assert installer.workers_spawned == 3
        assert sorted(o.name for o in outcomes) == ["a", "b", "c"]
        assert sorted(brew_mock.calls("install")) == ["a", "b", "c"]

    def test_each_job_exactly_once(self, registry, brew_mock):
        names = [f"pkg{i}" for i in range(25)]
        outcomes = ConcurrentInstaller(registry, pool_size=4).run(_jobs(*names))
        assert len(outcomes) == 25
        assert sorted(brew_mock.calls("install")) == sorted(names)

    def test_pool_size_caps_concurrency(self):
        slow = SlowManager(name="brew", categories=(Category.FORMULA,))
        reg = AdapterRegistry()
        reg.register(slow)
        installer = ConcurrentInstaller(reg, pool_size=2)
        installer.run(_jobs(*"abcdef"))
        assert installer.workers_spawned == 2
        assert slow.peak <= 2

    def test_pool_of_one_is_sequential(self):
        slow = SlowManager(delay=0.01, name="brew", categories=(Category.CASK,))
        reg = AdapterRegistry()
        reg.register(slow)
        ConcurrentInstaller(reg, pool_size=1).run(_jobs("x", "y", "z", category=Category.CASK))
        assert slow.peak == 1

    def test_fail_soft(self, registry, brew_mock):
        brew_mock.set_failure("b", ErrorKind.NOT_FOUND)
        outcomes = {o.name: o for o in ConcurrentInstaller(registry).run(_jobs("a", "b", "c"))}
        assert outcomes["a"].succeeded
        assert outcomes["b"].error_kind is ErrorKind.NOT_FOUND
        assert outcomes["c"].succeeded

    def test_adapter_exception_becomes_outcome(self):
        reg = AdapterRegistry()
        reg.register(ExplodingManager(name="brew", categories=(Category.FORMULA,)))
        outcomes = {o.name: o for o in ConcurrentInstaller(reg).run(_jobs("ok", "boom"))}
        assert outcomes["ok"].succeeded
        assert outcomes["boom"].error_kind is ErrorKind.UNKNOWN
        assert "adapter bug" in outcomes["boom"].reason

    def test_retry_policy_applied(self, registry, brew_mock):
        brew_mock.set_failure("flaky", ErrorKind.TIMEOUT)
        installer = ConcurrentInstaller(registry, retry_policy=RetryPolicy(max_attempts=3, backoff_unit=0))
        [outcome] = installer.run(_jobs("flaky"))
        assert outcome.error_kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert brew_mock.calls("install") == ["flaky"] * 3

    def test_cancelled_before_start(self, registry, brew_mock):
        cancel = threading.Event()
        cancel.set()
        outcomes = ConcurrentInstaller(registry).run(_jobs("a", "b"), cancel=cancel)
        assert {o.error_kind for o in outcomes} == {ErrorKind.CANCELLED}
        assert brew_mock.calls("install") == []

    def test_invalid_pool_size(self, registry):
        with pytest.raises(ValueError):
            ConcurrentInstaller(registry, pool_size=0)


# ── Progress ────────────────────────────────────────────────────────


class TestProgress:
    def test_start_precedes_finish_per_job(self, registry):
        events = []
        with ProgressAggregator(total=8, listener=events.append) as progress:
            ConcurrentInstaller(registry, pool_size=4, progress=progress).run(
                _jobs(*[f"p{i}" for i in range(8)])
            )
        assert len(events) == 16
        for name in (f"p{i}" for i in range(8)):
            phases = [e.phase for e in events if e.name == name]
            assert phases == ["start", "finish"]

    def test_tallies(self, registry, brew_mock):
        brew_mock.set_failure("bad", ErrorKind.NOT_FOUND)
        with ProgressAggregator(total=3, skipped=2) as progress:
            ConcurrentInstaller(registry, progress=progress).run(_jobs("a", "b", "bad"))
        assert progress.tallies() == {
            "total": 3, "completed": 3, "succeeded": 2, "failed": 1, "skipped": 2,
        }

    def test_completed_is_monotonic(self, registry):
        events = []
        with ProgressAggregator(total=10, listener=events.append) as progress:
            ConcurrentInstaller(registry, progress=progress).run(_jobs(*[f"x{i}" for i in range(10)]))
        completed = [e.completed for e in events if e.phase == "finish"]
        assert completed == list(range(1, 11))

    def test_finish_event_carries_outcome(self):
        job = InstallJob(name="wget", category=Category.FORMULA)
        progress = ProgressAggregator(total=1)
        progress.job_started(job)
        progress.job_finished(job, JobOutcome.skip("wget", Category.FORMULA, reason="already installed"))
        progress.close()
        finish = progress.events[-1]
        assert finish.bucket == "skipped"
        assert finish.reason == "already installed"
        assert finish.skipped == 1

    def test_listener_error_does_not_stop_consumer(self):
        def broken(event):
            raise RuntimeError("render failed")

        job = InstallJob(name="a", category=Category.NPM)
        with ProgressAggregator(total=1, listener=broken) as progress:
            progress.job_started(job)
            progress.job_finished(job, JobOutcome.success("a", Category.NPM))
        assert progress.completed == 1
