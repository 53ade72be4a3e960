"""
Error rules — ordered (patterns, kind) table for package-manager output.

Rules are evaluated top to bottom against the lower-cased combined
output; the first rule with any matching pattern wins. Order matters:
"Error: No available formula" must resolve to NOT_FOUND before any
generic rule gets a chance, and "already installed" must beat the
network rules that brew sometimes prints alongside it.

Keep this file pure data. Message wording drifts upstream; updating a
pattern here must never require touching the classifier or the
install engine.
"""

from __future__ import annotations

from brewsync.core.models.package import ErrorKind

ERROR_RULES: list[tuple[tuple[str, ...], ErrorKind]] = [
    # ── Package does not exist ─────────────────────────────────
    (("no available formula", "no cask with this name", "404 not found"), ErrorKind.NOT_FOUND),

    # ── Not an error at all ────────────────────────────────────
    (("already installed",), ErrorKind.ALREADY_INSTALLED),

    # ── Network ────────────────────────────────────────────────
    (("no internet", "enetwork", "enotfound"), ErrorKind.NO_INTERNET),
    (("connection refused", "econnrefused"), ErrorKind.CONNECTION_REFUSED),
    (("timed out", "etimedout"), ErrorKind.TIMEOUT),

    # ── Local machine ──────────────────────────────────────────
    (("permission denied", "eacces"), ErrorKind.PERMISSION_DENIED),
    (("disk full", "no space", "enospc"), ErrorKind.DISK_FULL),

    # ── Transient collisions ───────────────────────────────────
    (("sha256 mismatch", "cannot download non-corrupt"), ErrorKind.DOWNLOAD_CORRUPTED),
    (("already running", "has already locked"), ErrorKind.ALREADY_RUNNING),
    (("signature mismatch",), ErrorKind.SIGNATURE_MISMATCH),

    # ── Dependency graph ───────────────────────────────────────
    (("depends on", "eresolve"), ErrorKind.DEPENDENCY_CONFLICT),
]

# Lines containing one of these are surfaced verbatim (truncated)
# when no rule above matches.
DIAGNOSTIC_MARKERS: tuple[str, ...] = ("error", "npm err!")

# Maximum characters of a diagnostic line shown to the user.
DIAGNOSTIC_MAX_LEN = 60

RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.CONNECTION_REFUSED,
    ErrorKind.NO_INTERNET,
    ErrorKind.DOWNLOAD_CORRUPTED,
    ErrorKind.ALREADY_RUNNING,
    ErrorKind.SIGNATURE_MISMATCH,
})
