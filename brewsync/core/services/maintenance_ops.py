"""
Maintenance operations — outdated report, doctor, update/upgrade, cleanup.

All brew-only. Mutating operations accept ``dry_run`` and spawn nothing
when it is set.
"""

from __future__ import annotations

import logging

from brewsync.adapters.brew import BrewAdapter, OutdatedPackage
from brewsync.adapters.registry import AdapterRegistry
from brewsync.core.errors import AdapterError
from brewsync.core.models.package import Category

logger = logging.getLogger(__name__)


def _brew(registry: AdapterRegistry) -> BrewAdapter:
    adapter = registry.for_category(Category.FORMULA)
    if not isinstance(adapter, BrewAdapter):
        raise AdapterError("maintenance commands need the Homebrew adapter")
    return adapter


def list_outdated(registry: AdapterRegistry) -> list[OutdatedPackage]:
    return _brew(registry).list_outdated()


def diagnose(registry: AdapterRegistry) -> list[str]:
    """Suggested fixes from ``brew doctor``; empty when healthy."""
    return _brew(registry).doctor()


def update_all(registry: AdapterRegistry, dry_run: bool = False) -> dict:
    """``brew update`` then ``brew upgrade``.

    Returns:
        ``{"ok": bool, "dry_run": bool, "steps": {step: ok}}``
    """
    if dry_run:
        logger.info("[dry-run] would run: brew update && brew upgrade")
        return {"ok": True, "dry_run": True, "steps": {}}

    brew = _brew(registry)
    logger.info("Updating Homebrew...")
    if not brew.update_index():
        return {"ok": False, "dry_run": False, "steps": {"update": False}}

    logger.info("Upgrading packages...")
    upgraded = brew.upgrade()
    return {"ok": upgraded, "dry_run": False, "steps": {"update": True, "upgrade": upgraded}}


def cleanup(registry: AdapterRegistry, dry_run: bool = False) -> bool:
    if dry_run:
        logger.info("[dry-run] would run: brew cleanup")
        return True
    logger.info("Cleaning up old versions...")
    return _brew(registry).cleanup()
