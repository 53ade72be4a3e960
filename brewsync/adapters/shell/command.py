"""
Command runner — the single place where package-manager subprocesses start.

Every adapter goes through ``CommandRunner.run``. Output is captured
combined (stderr folded into stdout) because that text is the only
input error classification gets.

Package-manager calls carry no timeout, but they are cancellable: when
a ``threading.Event`` is passed and gets set, the child is terminated
and the result is marked ``cancelled``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass

from brewsync.core.errors import AdapterUnavailableError

logger = logging.getLogger(__name__)

# How often a running child is checked against the cancel event.
_POLL_INTERVAL = 0.2

# Grace period between terminate() and kill().
_KILL_GRACE = 5.0


@dataclass
class CommandResult:
    """Exit status and combined output of one command."""

    args: list[str]
    returncode: int
    output: str = ""
    duration_ms: int = 0
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.cancelled


class CommandRunner:
    """Run commands with combined output capture.

    Tests replace this with a scripted fake; see ``tests/conftest.py``.
    """

    def run(
        self,
        args: list[str],
        *,
        env_overrides: dict[str, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """Run ``args`` and wait for it to exit.

        Raises:
            AdapterUnavailableError: If the executable does not exist.
        """
        env = os.environ.copy()
        if env_overrides:
            env.update(env_overrides)

        logger.debug("Executing: %s", " ".join(args))
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
            )
        except FileNotFoundError as e:
            raise AdapterUnavailableError(f"{args[0]}: command not found") from e

        cancelled = False
        while True:
            try:
                output, _ = proc.communicate(timeout=_POLL_INTERVAL if cancel else None)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    cancelled = True
                    output = _terminate(proc)
                    break

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if cancelled:
            logger.info("Cancelled: %s", " ".join(args))
        else:
            logger.debug("Exit %d after %dms: %s", proc.returncode, elapsed_ms, " ".join(args))

        return CommandResult(
            args=list(args),
            returncode=proc.returncode,
            output=output or "",
            duration_ms=elapsed_ms,
            cancelled=cancelled,
        )


def _terminate(proc: subprocess.Popen) -> str:
    proc.terminate()
    try:
        output, _ = proc.communicate(timeout=_KILL_GRACE)
    except subprocess.TimeoutExpired:
        proc.kill()
        output, _ = proc.communicate()
    return output or ""
