"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

import pytest

from brewsync.adapters.mock import MockPackageManager
from brewsync.adapters.registry import AdapterRegistry
from brewsync.adapters.shell.command import CommandResult
from brewsync.core.errors import AdapterUnavailableError
from brewsync.core.models.package import Category


@dataclass
class Scripted:
    returncode: int = 0
    output: str = ""
    missing: bool = False
    cancelled: bool = False


class FakeRunner:
    """Scripted stand-in for CommandRunner.

    Responses are keyed on an argument prefix; the longest matching
    prefix wins. Several responses for one prefix are consumed in
    order, the last one repeating. Unscripted commands succeed with no
    output.
    """

    def __init__(self) -> None:
        self._scripts: dict[tuple[str, ...], list[Scripted]] = {}
        self._lock = threading.Lock()
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str] | None] = []

    def on(self, *prefix: str, returncode: int = 0, output: str = "",
           missing: bool = False, cancelled: bool = False) -> FakeRunner:
        self._scripts.setdefault(tuple(prefix), []).append(
            Scripted(returncode, output, missing, cancelled)
        )
        return self

    @property
    def invocations(self) -> int:
        return len(self.calls)

    def called(self, *prefix: str) -> int:
        return sum(1 for c in self.calls if tuple(c[: len(prefix)]) == prefix)

    def run(self, args, *, env_overrides=None, cancel=None) -> CommandResult:
        with self._lock:
            self.calls.append(list(args))
            self.envs.append(env_overrides)
            best = None
            for prefix in self._scripts:
                if tuple(args[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                    best = prefix
            if best is None:
                return CommandResult(args=list(args), returncode=0, duration_ms=10)
            queue = self._scripts[best]
            spec = queue.pop(0) if len(queue) > 1 else queue[0]

        if spec.missing:
            raise AdapterUnavailableError(f"{args[0]}: command not found")
        return CommandResult(
            args=list(args),
            returncode=spec.returncode,
            output=spec.output,
            duration_ms=10,
            cancelled=spec.cancelled,
        )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def brew_mock() -> MockPackageManager:
    return MockPackageManager(
        name="brew",
        categories=(Category.FORMULA, Category.CASK, Category.TAP),
    )


@pytest.fixture
def npm_mock() -> MockPackageManager:
    return MockPackageManager(name="npm", categories=(Category.NPM,), optional=True)


@pytest.fixture
def registry(brew_mock, npm_mock) -> AdapterRegistry:
    """Registry of mock brew + mock npm; no subprocess is ever started."""
    reg = AdapterRegistry()
    reg.register(brew_mock)
    reg.register(npm_mock)
    return reg
