"""
Error hierarchy for brewsync.

Per-package failures are reported as ``JobOutcome`` values, not raised.
The exceptions below cover conditions that stop a whole operation, or
that summarise many item failures at once.
"""

from __future__ import annotations


class BrewsyncError(Exception):
    """Base class for all brewsync errors."""


class ConfigError(BrewsyncError):
    """Raised when the desired-state configuration is invalid or missing."""


class AdapterError(BrewsyncError):
    """A package manager command needed to continue has failed."""


class AdapterUnavailableError(AdapterError):
    """The package manager binary is not installed."""


class PreflightError(BrewsyncError):
    """A pre-install check failed; nothing was installed."""


class AggregateFailure(BrewsyncError):
    """N of M items failed.

    Always itemised: ``failures`` maps each failed item label to its
    reason, so callers never have to parse one opaque message.
    """

    def __init__(self, failures: dict[str, str], total: int | None = None):
        self.failures = dict(failures)
        self.total = total
        count = len(self.failures)
        prefix = f"{count} of {total}" if total is not None else str(count)
        lines = [f"{label}: {reason}" for label, reason in self.failures.items()]
        super().__init__(f"{prefix} item(s) failed:\n" + "\n".join(lines))

    def __len__(self) -> int:
        return len(self.failures)
