"""
Adapter base — the contract between the install engine and package managers.

The engine only talks to package managers through this interface,
never to subprocesses directly.

Adapters perform side effects and return outcomes. For per-package
operations they NEVER raise: failures are captured in the JobOutcome.
Only listing the installed set may raise, and only for required
managers.
"""

from __future__ import annotations

import logging
import shutil
import threading
from abc import ABC, abstractmethod

from brewsync.adapters.shell.command import CommandResult, CommandRunner
from brewsync.core.errors import AdapterError, AdapterUnavailableError
from brewsync.core.models.package import Category, ErrorKind, JobOutcome
from brewsync.core.services.error_classifier import classify

logger = logging.getLogger(__name__)


class PackageManagerAdapter(ABC):
    """Abstract base class for package manager adapters.

    To add a package manager:
        1. Subclass PackageManagerAdapter
        2. Set ``binary``, ``categories`` and ``optional``
        3. Implement the three command builders and ``list_installed``
        4. Register it in the AdapterRegistry
    """

    #: Executable looked up on PATH.
    binary: str = ""
    #: Categories this adapter serves.
    categories: tuple[Category, ...] = ()
    #: Optional managers degrade to "nothing installed" when missing.
    optional: bool = False

    def __init__(self, runner: CommandRunner | None = None):
        self._runner = runner or CommandRunner()

    @property
    def name(self) -> str:
        return self.binary

    def is_available(self) -> bool:
        """Whether the manager binary is on PATH. Fast, never raises."""
        return shutil.which(self.binary) is not None

    def serves(self, category: Category) -> bool:
        return category in self.categories

    # ── Listing ─────────────────────────────────────────────────

    @abstractmethod
    def list_installed(self, category: Category) -> set[str]:
        """Return the names currently installed for ``category``.

        Raises:
            AdapterError: The listing command failed (required managers).
        """

    # ── Mutations ───────────────────────────────────────────────

    @abstractmethod
    def install_args(self, name: str, category: Category) -> list[str]:
        """Command line installing one item."""

    @abstractmethod
    def uninstall_args(self, name: str, category: Category) -> list[str]:
        """Command line removing one item."""

    def install_env(self) -> dict[str, str]:
        """Extra environment for install commands."""
        return {}

    def install_one(
        self,
        name: str,
        category: Category,
        cancel: threading.Event | None = None,
    ) -> JobOutcome:
        """Install one item and classify the result."""
        return self._mutate(
            self.install_args(name, category),
            name,
            category,
            cancel=cancel,
            env_overrides=self.install_env(),
        )

    def uninstall_one(
        self,
        name: str,
        category: Category,
        cancel: threading.Event | None = None,
    ) -> JobOutcome:
        """Remove one item and classify the result."""
        return self._mutate(self.uninstall_args(name, category), name, category, cancel=cancel)

    # ── Helpers ─────────────────────────────────────────────────

    def _run(
        self,
        args: list[str],
        *,
        env_overrides: dict[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        return self._runner.run(args, env_overrides=env_overrides, cancel=cancel)

    def _list_lines(self, args: list[str]) -> list[str]:
        """Run a listing command and return its non-empty lines."""
        try:
            result = self._run(args)
        except AdapterUnavailableError:
            if self.optional:
                logger.debug("%s not installed, treating as empty", self.binary)
                return []
            raise
        if not result.ok:
            raise AdapterError(
                f"{' '.join(args)} failed (exit {result.returncode}): "
                f"{result.output.strip()[:200]}"
            )
        return [line.strip() for line in result.output.splitlines() if line.strip()]

    def _mutate(
        self,
        args: list[str],
        name: str,
        category: Category,
        *,
        cancel: threading.Event | None = None,
        env_overrides: dict[str, str] | None = None,
    ) -> JobOutcome:
        try:
            result = self._run(args, env_overrides=env_overrides, cancel=cancel)
        except AdapterUnavailableError as e:
            return JobOutcome.failure(
                name, category, ErrorKind.ADAPTER_UNAVAILABLE, detail=str(e),
            )
        return self._outcome_from(result, name, category)

    def _outcome_from(
        self,
        result: CommandResult,
        name: str,
        category: Category,
        attempts: int = 1,
    ) -> JobOutcome:
        if result.cancelled:
            return JobOutcome.failure(
                name, category, ErrorKind.CANCELLED,
                detail=result.output, duration_ms=result.duration_ms, attempts=attempts,
            )
        if result.ok:
            return JobOutcome.success(
                name, category, duration_ms=result.duration_ms, attempts=attempts,
            )

        verdict = classify(result.output)
        if not verdict.is_error:
            return JobOutcome.skip(
                name, category, reason=verdict.reason,
                duration_ms=result.duration_ms, attempts=attempts,
            )
        return JobOutcome.failure(
            name,
            category,
            verdict.kind,
            reason=verdict.reason,
            detail=result.output,
            duration_ms=result.duration_ms,
            attempts=attempts,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
