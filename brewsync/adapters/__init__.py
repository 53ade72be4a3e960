"""Adapters — package manager bindings.

Public re-exports for convenient access.
"""

from brewsync.adapters.base import PackageManagerAdapter
from brewsync.adapters.brew import BrewAdapter, FallbackPolicy
from brewsync.adapters.mock import MockPackageManager
from brewsync.adapters.npm import NpmAdapter
from brewsync.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "AdapterRegistry",
    "BrewAdapter",
    "FallbackPolicy",
    "MockPackageManager",
    "NpmAdapter",
    "PackageManagerAdapter",
    "default_registry",
]
