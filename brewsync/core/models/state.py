"""
Desired and installed package state.

Both are request-scoped values: built fresh for one operation and
thrown away afterwards. Installed state is always queried live, there
is no cache of either anywhere in brewsync.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from brewsync.core.models.package import Category

_FIELD_FOR_CATEGORY: dict[Category, str] = {
    Category.FORMULA: "formulae",
    Category.CASK: "casks",
    Category.TAP: "taps",
    Category.NPM: "npm",
}


class PackageSets(BaseModel):
    """One set of unique package names per category."""

    formulae: set[str] = Field(default_factory=set)
    casks: set[str] = Field(default_factory=set)
    taps: set[str] = Field(default_factory=set)
    npm: set[str] = Field(default_factory=set)

    @field_validator("formulae", "casks", "taps", "npm", mode="before")
    @classmethod
    def _normalise_names(cls, value: Any) -> Any:
        if value is None:
            return set()
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple, set, frozenset)):
            return {str(v).strip() for v in value if v is not None and str(v).strip()}
        return value

    def for_category(self, category: Category) -> set[str]:
        """Return the (live) set for a category."""
        return getattr(self, _FIELD_FOR_CATEGORY[category])

    def set_category(self, category: Category, names: set[str]) -> None:
        setattr(self, _FIELD_FOR_CATEGORY[category], set(names))

    @property
    def total(self) -> int:
        return sum(len(self.for_category(c)) for c in Category)

    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict[str, list[str]]:
        return {field: sorted(self.for_category(cat)) for cat, field in _FIELD_FOR_CATEGORY.items()}


class DesiredState(PackageSets):
    """What the user asked for (from config or a captured snapshot)."""


class InstalledState(PackageSets):
    """What the package managers report right now."""
