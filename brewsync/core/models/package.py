"""
Package and outcome models — the install/uninstall contract.

Jobs represent requested package operations. Outcomes represent results.
Adapters receive a name and a category and always hand back a
``JobOutcome``: item failures are data, never exceptions.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class Category(StrEnum):
    """Package namespaces managed by brewsync."""

    FORMULA = "formula"
    CASK = "cask"
    TAP = "tap"
    NPM = "npm"


# Order used when applying removal plans and printing summaries.
CATEGORY_ORDER: tuple[Category, ...] = (
    Category.FORMULA,
    Category.CASK,
    Category.NPM,
    Category.TAP,
)


class ErrorKind(StrEnum):
    """Canonical failure kinds.

    The first group comes from classifying package-manager output; the
    second group is produced by the orchestration layers.
    """

    NOT_FOUND = "not_found"
    ALREADY_INSTALLED = "already_installed"
    NO_INTERNET = "no_internet"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    PERMISSION_DENIED = "permission_denied"
    DISK_FULL = "disk_full"
    DOWNLOAD_CORRUPTED = "download_corrupted"
    ALREADY_RUNNING = "already_running"
    SIGNATURE_MISMATCH = "signature_mismatch"
    DEPENDENCY_CONFLICT = "dependency_conflict"
    DIAGNOSTIC = "diagnostic"
    UNKNOWN = "unknown"

    ADAPTER_UNAVAILABLE = "adapter_unavailable"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
    CANCELLED = "cancelled"


class InstallJob(BaseModel):
    """A single package operation waiting in a worker queue."""

    model_config = ConfigDict(frozen=True)

    name: str
    category: Category

    def __str__(self) -> str:
        return f"{self.category}:{self.name}"


class JobOutcome(BaseModel):
    """Result of one install or uninstall.

    Exactly one of ``succeeded`` and ``error_kind`` carries meaning:
    a success never has an error kind, a failure always has one.
    ``skipped`` marks successes that had no effect (already installed,
    dry run, optional manager missing).
    """

    name: str
    category: Category
    succeeded: bool
    error_kind: ErrorKind | None = None
    reason: str = ""        # human-readable, safe for summaries
    detail: str = ""        # raw combined output, for logs only
    duration_ms: int = 0
    attempts: int = 1
    skipped: bool = False

    @model_validator(mode="after")
    def _check_exclusive(self) -> JobOutcome:
        if self.succeeded and self.error_kind is not None:
            raise ValueError("a successful outcome cannot carry an error kind")
        if not self.succeeded and self.error_kind is None:
            raise ValueError("a failed outcome must carry an error kind")
        if self.skipped and not self.succeeded:
            raise ValueError("a skipped outcome counts as a success")
        return self

    @property
    def failed(self) -> bool:
        return not self.succeeded

    @property
    def bucket(self) -> str:
        """Progress bucket: ``succeeded``, ``failed`` or ``skipped``."""
        if self.skipped:
            return "skipped"
        return "succeeded" if self.succeeded else "failed"

    @classmethod
    def success(
        cls,
        name: str,
        category: Category,
        **kwargs: Any,
    ) -> JobOutcome:
        """Create a success outcome."""
        return cls(name=name, category=category, succeeded=True, **kwargs)

    @classmethod
    def failure(
        cls,
        name: str,
        category: Category,
        error_kind: ErrorKind,
        reason: str = "",
        **kwargs: Any,
    ) -> JobOutcome:
        """Create a failure outcome."""
        return cls(
            name=name,
            category=category,
            succeeded=False,
            error_kind=error_kind,
            reason=reason or describe_kind(error_kind),
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        name: str,
        category: Category,
        reason: str = "",
        **kwargs: Any,
    ) -> JobOutcome:
        """Create a skip outcome (a success with no effect)."""
        return cls(
            name=name,
            category=category,
            succeeded=True,
            skipped=True,
            reason=reason,
            **kwargs,
        )


_KIND_DESCRIPTIONS: dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "package not found",
    ErrorKind.ALREADY_INSTALLED: "already installed",
    ErrorKind.NO_INTERNET: "no internet connection",
    ErrorKind.CONNECTION_REFUSED: "connection refused",
    ErrorKind.TIMEOUT: "connection timed out",
    ErrorKind.PERMISSION_DENIED: "permission denied",
    ErrorKind.DISK_FULL: "disk full",
    ErrorKind.DOWNLOAD_CORRUPTED: "download corrupted",
    ErrorKind.ALREADY_RUNNING: "another install is already running",
    ErrorKind.SIGNATURE_MISMATCH: "signature mismatch",
    ErrorKind.DEPENDENCY_CONFLICT: "dependency error",
    ErrorKind.DIAGNOSTIC: "install failed",
    ErrorKind.UNKNOWN: "unknown error",
    ErrorKind.ADAPTER_UNAVAILABLE: "package manager not available",
    ErrorKind.MAX_RETRIES_EXCEEDED: "max retries exceeded",
    ErrorKind.CANCELLED: "cancelled",
}


def describe_kind(kind: ErrorKind) -> str:
    """Human-readable label for an error kind."""
    return _KIND_DESCRIPTIONS.get(kind, kind.value.replace("_", " "))
