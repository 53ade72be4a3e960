"""
Configuration loader — reads the desired package state.

Two sources are accepted:
    - ``brewsync.yml`` (YAML), searched upward from the working directory
    - a captured snapshot (JSON) with a ``packages`` mapping

Either may wrap the category lists under a top-level ``packages`` key.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from brewsync.core.errors import ConfigError
from brewsync.core.models.state import DesiredState

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "brewsync.yml"

# Accepted aliases for category keys.
_KEY_ALIASES = {
    "formulae": "formulae",
    "formulas": "formulae",
    "brews": "formulae",
    "casks": "casks",
    "taps": "taps",
    "npm": "npm",
    "node": "npm",
}


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for brewsync.yml starting from ``start_dir``, walking up."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_desired_state(path: Path | None = None) -> DesiredState:
    """Load and validate the desired state.

    Args:
        path: Explicit config or snapshot path. If None, searches upward.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(f"No {CONFIG_FILE} found. Create one, or specify --config.")

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading desired state from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if path.suffix == ".json":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    else:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    state = parse_desired_state(data, source=str(path))
    logger.info("Loaded desired state from %s: %d package(s)", path, state.total)
    return state


def parse_desired_state(data: object, source: str = "<data>") -> DesiredState:
    """Validate an already-decoded mapping into a DesiredState."""
    if data is None:
        return DesiredState()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {source}, got {type(data).__name__}")

    packages = data.get("packages", data)
    if not isinstance(packages, dict):
        raise ConfigError(f"'packages' in {source} must be a mapping")

    fields: dict[str, list] = {}
    for key, value in packages.items():
        target = _KEY_ALIASES.get(str(key).lower())
        if target is None:
            logger.debug("Ignoring unknown key '%s' in %s", key, source)
            continue
        if value is not None and not isinstance(value, list):
            raise ConfigError(f"'{key}' in {source} must be a list of names")
        fields.setdefault(target, []).extend(value or [])

    try:
        return DesiredState.model_validate(fields)
    except ValidationError as e:
        raise ConfigError(f"Invalid package configuration in {source}: {e}") from e
