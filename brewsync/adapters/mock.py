"""
Mock package manager — test double for every adapter operation.

Never spawns a process. Keeps an in-memory installed set, a call log
and an invocation counter so tests can assert exactly which commands
would have run.
"""

from __future__ import annotations

import threading

from brewsync.adapters.base import PackageManagerAdapter
from brewsync.adapters.shell.command import CommandResult
from brewsync.core.models.package import Category, ErrorKind, JobOutcome, describe_kind


class MockPackageManager(PackageManagerAdapter):
    """Universal mock adapter.

    By default every install/uninstall succeeds and updates the
    in-memory installed set. Individual names can be configured to fail
    with a given ErrorKind.
    """

    def __init__(
        self,
        name: str = "mock",
        categories: tuple[Category, ...] = tuple(Category),
        available: bool = True,
        optional: bool = False,
        installed: dict[Category, set[str]] | None = None,
    ):
        super().__init__(runner=None)
        self.binary = name
        self.categories = categories
        self.optional = optional
        self._available = available
        self._installed: dict[Category, set[str]] = {
            c: set((installed or {}).get(c, set())) for c in categories
        }
        self._failures: dict[str, ErrorKind] = {}
        self._lock = threading.Lock()
        self.call_log: list[tuple[str, str, Category]] = []

    @property
    def call_count(self) -> int:
        """Number of operations that would have spawned a subprocess."""
        return len(self.call_log)

    def calls(self, op: str) -> list[str]:
        """Names passed to ``op`` (``list``, ``install``, ``batch`` or ``uninstall``)."""
        return [name for logged_op, name, _ in self.call_log if logged_op == op]

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, name: str, kind: ErrorKind = ErrorKind.UNKNOWN) -> None:
        """Configure ``name`` to fail with ``kind``."""
        self._failures[name] = kind

    def list_installed(self, category: Category) -> set[str]:
        with self._lock:
            self.call_log.append(("list", "", category))
            if not self._available:
                return set()
            return set(self._installed.get(category, set()))

    def install_args(self, name: str, category: Category) -> list[str]:
        return [self.binary, "install", name]

    def uninstall_args(self, name: str, category: Category) -> list[str]:
        return [self.binary, "uninstall", name]

    def install_one(
        self,
        name: str,
        category: Category,
        cancel: threading.Event | None = None,
    ) -> JobOutcome:
        return self._apply("install", name, category)

    def uninstall_one(
        self,
        name: str,
        category: Category,
        cancel: threading.Event | None = None,
    ) -> JobOutcome:
        return self._apply("uninstall", name, category)

    def install_batch(
        self,
        names: list[str],
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """All-or-nothing batch: fails without installing if any name is set to fail."""
        args = [self.binary, "install", "-g", *names]
        with self._lock:
            self.call_log.extend(("batch", n, Category.NPM) for n in names)
            failing = [n for n in names if n in self._failures]
            if failing:
                lines = [f"npm ERR! {n}: {describe_kind(self._failures[n])}" for n in failing]
                return CommandResult(args=args, returncode=1, output="\n".join(lines))
            self._installed.setdefault(Category.NPM, set()).update(names)
        return CommandResult(args=args, returncode=0)

    def _apply(self, op: str, name: str, category: Category) -> JobOutcome:
        with self._lock:
            self.call_log.append((op, name, category))
            if name in self._failures:
                return JobOutcome.failure(name, category, self._failures[name])
            bucket = self._installed.setdefault(category, set())
            if op == "install":
                bucket.add(name)
            else:
                bucket.discard(name)
        return JobOutcome.success(name, category)

    def reset(self) -> None:
        """Clear call log and configured failures."""
        self.call_log.clear()
        self._failures.clear()
