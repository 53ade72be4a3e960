"""
npm adapter — global Node packages.

npm is optional: when it is not installed, listing returns an empty
set and installs are skipped by the service layer, never fatal.
"""

from __future__ import annotations

import logging
import threading

from brewsync.adapters.base import PackageManagerAdapter
from brewsync.adapters.shell.command import CommandResult
from brewsync.core.errors import AdapterError, AdapterUnavailableError
from brewsync.core.models.package import Category

logger = logging.getLogger(__name__)

# Bundled with Node itself; never reported as user packages.
_BUNDLED = frozenset({"npm", "corepack"})

# Packages known to need a recent Node major.
NODE_MAJOR_REQUIREMENTS: dict[str, int] = {
    "wrangler": 22,
    "@cloudflare/wrangler": 22,
}


def parse_parseable_list(output: str) -> set[str]:
    """Parse ``npm list -g --depth=0 --parseable`` output.

    The first line is the global prefix itself; every other line is an
    absolute install path whose last segment is the package name, with
    the preceding segment prepended when it is an ``@scope``.
    """
    lines = [line.strip() for line in output.strip().splitlines()]
    packages: set[str] = set()
    for line in lines[1:]:
        if not line:
            continue
        parts = line.replace("\\", "/").rstrip("/").split("/")
        name = parts[-1]
        if len(parts) >= 2 and parts[-2].startswith("@"):
            name = f"{parts[-2]}/{parts[-1]}"
        if name and name not in _BUNDLED:
            packages.add(name)
    return packages


class NpmAdapter(PackageManagerAdapter):
    """Global npm package adapter."""

    binary = "npm"
    categories = (Category.NPM,)
    optional = True

    def list_installed(self, category: Category = Category.NPM) -> set[str]:
        if category is not Category.NPM:
            raise ValueError(f"npm does not manage {category}")
        args = ["npm", "list", "-g", "--depth=0", "--parseable"]
        try:
            result = self._run(args)
        except AdapterUnavailableError:
            logger.debug("npm not installed, treating as empty")
            return set()

        # npm list exits non-zero on peer-dependency problems but still
        # prints the parseable list.
        if not result.ok and not result.output.strip():
            raise AdapterError(f"npm list -g failed (exit {result.returncode})")
        return parse_parseable_list(result.output)

    def install_args(self, name: str, category: Category = Category.NPM) -> list[str]:
        return ["npm", "install", "-g", name]

    def uninstall_args(self, name: str, category: Category = Category.NPM) -> list[str]:
        return ["npm", "uninstall", "-g", name]

    def install_batch(
        self,
        names: list[str],
        cancel: threading.Event | None = None,
    ) -> CommandResult:
        """One ``npm install -g`` covering every name."""
        return self._run(["npm", "install", "-g", *names], cancel=cancel)

    def node_major_version(self) -> int | None:
        """Major version of ``node``, or None when unknown."""
        try:
            result = self._run(["node", "--version"])
        except AdapterUnavailableError:
            return None
        if not result.ok:
            return None
        version = result.output.strip().lstrip("v")
        try:
            return int(version.split(".")[0])
        except ValueError:
            return None

    def node_requirement_warnings(self, names: set[str] | list[str]) -> list[str]:
        """Warnings for packages that need a newer Node than installed."""
        wanted = {n: NODE_MAJOR_REQUIREMENTS[n] for n in names if n in NODE_MAJOR_REQUIREMENTS}
        if not wanted:
            return []
        major = self.node_major_version()
        if not major:
            return []
        return [
            f"{name} requires Node.js v{need}+ (found v{major}); consider: brew install node@{need}"
            for name, need in sorted(wanted.items())
            if major < need
        ]
