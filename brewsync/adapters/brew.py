"""
Homebrew adapter — formulae, casks and taps.

Also hosts the brew-only maintenance commands (outdated, doctor,
update/upgrade, cleanup) consumed by ``maintenance_ops``.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass

from brewsync.adapters.base import PackageManagerAdapter
from brewsync.core.errors import AdapterError
from brewsync.core.models.package import Category, JobOutcome

logger = logging.getLogger(__name__)

# brew prints this hint when a formula name is really a cask.
_CASK_HINT = ("try again using", "--cask")

# `brew doctor` output fragment → suggested fix.
_DOCTOR_SUGGESTIONS: list[tuple[tuple[str, ...], str]] = [
    (("unbrewed header files",), "Run: sudo rm -rf /usr/local/include"),
    (("unbrewed dylibs",), "Run: brew doctor --list-checks and review linked libraries"),
    (("homebrew/core", "tap"), "Run: brew untap homebrew/core homebrew/cask"),
    (("git origin remote",), "Run: brew update-reset"),
    (("broken symlinks",), "Run: brew cleanup --prune=all"),
    (("outdated xcode",), "Run: xcode-select --install"),
    (("command line tools",), "Run: xcode-select --install"),
    (("uncommitted modifications",), "Run: brew update-reset"),
    (("permission",), "Run: sudo chown -R $(whoami) $(brew --prefix)/*"),
]


@dataclass(frozen=True)
class FallbackPolicy:
    """Which formula/cask reclassification retries are allowed.

    A formula install that fails with brew's "try again using --cask"
    hint is retried once as a cask. The reverse direction is off by
    default.
    """

    formula_to_cask: bool = True
    cask_to_formula: bool = False


@dataclass(frozen=True)
class OutdatedPackage:
    name: str
    current: str
    latest: str
    cask: bool = False

    @property
    def label(self) -> str:
        return f"{self.name} (cask)" if self.cask else self.name


class BrewAdapter(PackageManagerAdapter):
    """Homebrew adapter.

    Install commands run with ``HOMEBREW_NO_AUTO_UPDATE=1``; the index
    is refreshed once up front instead of once per package.
    """

    binary = "brew"
    categories = (Category.FORMULA, Category.CASK, Category.TAP)
    optional = False

    def __init__(self, runner=None, fallback: FallbackPolicy | None = None):
        super().__init__(runner)
        self.fallback = fallback or FallbackPolicy()

    # ── Listing ─────────────────────────────────────────────────

    def list_installed(self, category: Category) -> set[str]:
        if category is Category.FORMULA:
            return set(self._list_lines(["brew", "list", "--formula", "-1"]))
        if category is Category.CASK:
            return set(self._list_lines(["brew", "list", "--cask", "-1"]))
        if category is Category.TAP:
            return set(self._list_lines(["brew", "tap"]))
        raise ValueError(f"brew does not manage {category}")

    # ── Command builders ────────────────────────────────────────

    def install_args(self, name: str, category: Category) -> list[str]:
        if category is Category.TAP:
            return ["brew", "tap", name]
        if category is Category.CASK:
            return ["brew", "install", "--cask", name]
        return ["brew", "install", name]

    def uninstall_args(self, name: str, category: Category) -> list[str]:
        if category is Category.TAP:
            return ["brew", "untap", name]
        if category is Category.CASK:
            return ["brew", "uninstall", "--cask", name]
        return ["brew", "uninstall", name]

    def install_env(self) -> dict[str, str]:
        return {"HOMEBREW_NO_AUTO_UPDATE": "1"}

    # ── Install with reclassification ───────────────────────────

    def install_one(
        self,
        name: str,
        category: Category,
        cancel: threading.Event | None = None,
    ) -> JobOutcome:
        outcome = super().install_one(name, category, cancel=cancel)
        if outcome.succeeded:
            return outcome

        if category is Category.FORMULA and self.fallback.formula_to_cask:
            if all(hint in outcome.detail.lower() for hint in _CASK_HINT):
                logger.info("%s is a cask, retrying with --cask", name)
                retry = self._mutate(
                    self.install_args(name, Category.CASK), name, category,
                    cancel=cancel, env_overrides=self.install_env(),
                )
                update = {"duration_ms": outcome.duration_ms + retry.duration_ms}
                if retry.succeeded:
                    update["category"] = Category.CASK
                    update["reason"] = retry.reason or "installed as cask"
                return retry.model_copy(update=update)

        if category is Category.CASK and self.fallback.cask_to_formula:
            logger.info("cask install of %s failed, trying as formula", name)
            retry = self._mutate(
                self.install_args(name, Category.FORMULA), name, category,
                cancel=cancel, env_overrides=self.install_env(),
            )
            if retry.succeeded:
                return retry.model_copy(update={
                    "category": Category.FORMULA,
                    "reason": retry.reason or "installed as formula",
                })

        return outcome

    # ── Maintenance ─────────────────────────────────────────────

    def list_outdated(self) -> list[OutdatedPackage]:
        """Parse ``brew outdated --json``."""
        result = self._run(["brew", "outdated", "--json"])
        if not result.ok:
            raise AdapterError(f"brew outdated failed: {result.output.strip()[:200]}")
        try:
            data = json.loads(result.output or "{}")
        except json.JSONDecodeError as e:
            raise AdapterError(f"brew outdated returned invalid JSON: {e}") from e

        outdated: list[OutdatedPackage] = []
        for key, is_cask in (("formulae", False), ("casks", True)):
            for entry in data.get(key) or []:
                versions = entry.get("installed_versions") or []
                outdated.append(OutdatedPackage(
                    name=entry.get("name", ""),
                    current=versions[0] if versions else "",
                    latest=entry.get("current_version", ""),
                    cask=is_cask,
                ))
        return outdated

    def doctor(self) -> list[str]:
        """Run ``brew doctor`` and map known warnings to fixes.

        Returns an empty list when brew reports it is ready to brew.
        """
        result = self._run(["brew", "doctor"])
        output = result.output
        if "ready to brew" in output:
            return []

        lowered = output.lower()
        suggestions: list[str] = []
        for fragments, fix in _DOCTOR_SUGGESTIONS:
            if all(f in lowered for f in fragments) and fix not in suggestions:
                suggestions.append(fix)

        if not suggestions:
            suggestions.append("Run 'brew doctor' to see full diagnostic output")
        return suggestions

    def update_index(self) -> bool:
        """``brew update``. Returns False on failure, never raises."""
        try:
            return self._run(["brew", "update"]).ok
        except AdapterError:
            return False

    def upgrade(self) -> bool:
        return self._run(["brew", "upgrade"]).ok

    def cleanup(self) -> bool:
        return self._run(["brew", "cleanup"]).ok
