"""
Adapter registry — category → package manager dispatch.

The engine and services never pick an adapter themselves; they ask the
registry which adapter serves a category.
"""

from __future__ import annotations

import logging
from typing import Any

from brewsync.adapters.base import PackageManagerAdapter
from brewsync.adapters.brew import BrewAdapter, FallbackPolicy
from brewsync.adapters.npm import NpmAdapter
from brewsync.adapters.shell.command import CommandRunner
from brewsync.core.models.package import Category

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry of package manager adapters."""

    def __init__(self) -> None:
        self._adapters: dict[str, PackageManagerAdapter] = {}
        self._by_category: dict[Category, PackageManagerAdapter] = {}

    def register(self, adapter: PackageManagerAdapter) -> None:
        """Register an adapter for every category it serves."""
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        for category in adapter.categories:
            self._by_category[category] = adapter
        logger.debug("Registered adapter: %s (%s)", name, ", ".join(adapter.categories))

    def get(self, name: str) -> PackageManagerAdapter | None:
        return self._adapters.get(name)

    def for_category(self, category: Category) -> PackageManagerAdapter:
        """Adapter serving ``category``.

        Raises:
            KeyError: No adapter registered for the category.
        """
        try:
            return self._by_category[category]
        except KeyError:
            raise KeyError(f"No adapter registered for '{category}'") from None

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered adapter."""
        status = {}
        for name, adapter in self._adapters.items():
            status[name] = {
                "name": name,
                "available": adapter.is_available(),
                "optional": adapter.optional,
                "categories": [str(c) for c in adapter.categories],
            }
        return status


def default_registry(
    runner: CommandRunner | None = None,
    fallback: FallbackPolicy | None = None,
) -> AdapterRegistry:
    """Registry with the brew and npm adapters sharing one runner."""
    runner = runner or CommandRunner()
    registry = AdapterRegistry()
    registry.register(BrewAdapter(runner, fallback=fallback))
    registry.register(NpmAdapter(runner))
    return registry
