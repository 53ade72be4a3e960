"""
Error classifier — map raw package-manager output to an ErrorKind.

Pure: no I/O, no subprocess, no state. The same text always yields the
same classification. The rule table lives in
``brewsync.core.data.error_rules``.
"""

from __future__ import annotations

from dataclasses import dataclass

from brewsync.core.data.error_rules import (
    DIAGNOSTIC_MARKERS,
    DIAGNOSTIC_MAX_LEN,
    ERROR_RULES,
    RETRYABLE_KINDS,
)
from brewsync.core.models.package import ErrorKind, describe_kind


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one blob of output."""

    kind: ErrorKind
    reason: str

    @property
    def is_error(self) -> bool:
        return self.kind is not ErrorKind.ALREADY_INSTALLED

    @property
    def retryable(self) -> bool:
        return is_retryable(self.kind)


def classify(
    output: str,
    rules: list[tuple[tuple[str, ...], ErrorKind]] | None = None,
) -> Classification:
    """Classify combined stdout/stderr of a failed command.

    Args:
        output: Raw combined output.
        rules: Optional rule table override (defaults to ``ERROR_RULES``).

    Returns:
        The first matching rule's kind, else a DIAGNOSTIC classification
        carrying the first line with an error marker, else UNKNOWN.
    """
    text = output or ""
    lowered = text.lower()

    for patterns, kind in rules if rules is not None else ERROR_RULES:
        if any(p in lowered for p in patterns):
            return Classification(kind=kind, reason=describe_kind(kind))

    line = _diagnostic_line(text)
    if line:
        return Classification(kind=ErrorKind.DIAGNOSTIC, reason=line)

    return Classification(kind=ErrorKind.UNKNOWN, reason=describe_kind(ErrorKind.UNKNOWN))


def is_retryable(kind: ErrorKind | None) -> bool:
    """Whether a failure of this kind is worth another attempt."""
    return kind in RETRYABLE_KINDS


def _diagnostic_line(output: str) -> str:
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        lowered = line.lower()
        if any(marker in lowered for marker in DIAGNOSTIC_MARKERS):
            if len(line) > DIAGNOSTIC_MAX_LEN:
                return line[:DIAGNOSTIC_MAX_LEN] + "..."
            return line
    return ""
