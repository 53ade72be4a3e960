"""
Logging configuration — set up once by the CLI entrypoint.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
what is configured here.

Level precedence:
    --debug / --verbose / --quiet  >  BREWSYNC_LOG_LEVEL  >  WARNING

File output is opt-in via BREWSYNC_LOG_FILE, with its own level in
BREWSYNC_LOG_FILE_LEVEL. Package-manager output is logged at DEBUG, so a
DEBUG log file is the place to look when a classified reason is not
enough.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping

ENV_LEVEL = "BREWSYNC_LOG_LEVEL"
ENV_FILE = "BREWSYNC_LOG_FILE"
ENV_FILE_LEVEL = "BREWSYNC_LOG_FILE_LEVEL"

# ── Formats ─────────────────────────────────────────────────────

# Console format by level: the CLI colours its own output, so WARNING
# and up print the bare message.
_CONSOLE_FORMATS: dict[int, str] = {
    logging.DEBUG: "%(asctime)s %(levelname)-5s %(threadName)s %(name)s:%(lineno)d — %(message)s",
    logging.INFO: "%(asctime)s [%(name)s] %(message)s",
}
_CONSOLE_DEFAULT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s — %(message)s"


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name.
        log_file: Optional log file path.
        log_file_level: Level for the file; defaults to ``level``.
    """
    console_level = _to_level(level)
    handlers = [_console_handler(console_level)]
    if log_file:
        handlers.append(_file_handler(log_file, _to_level(log_file_level or level)))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    # no tracebacks on stderr from a closed stream
    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt = next(
        (f for threshold, f in sorted(_CONSOLE_FORMATS.items()) if level <= threshold),
        _CONSOLE_DEFAULT,
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    return handler


def _to_level(name: str | None) -> int:
    """Level name → numeric level; WARNING for anything unrecognised."""
    value = logging.getLevelName((name or "").upper())
    return value if isinstance(value, int) else logging.WARNING
