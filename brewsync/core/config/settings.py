"""
Runtime settings — tunables read from the environment.

    BREWSYNC_WORKERS          worker pool size for formulae   (4)
    BREWSYNC_MAX_ATTEMPTS     tries per package               (3)
    BREWSYNC_BACKOFF_SECONDS  linear backoff unit             (2.0)
    BREWSYNC_SKIP_PREFLIGHT   skip network/disk checks        (false)
    BREWSYNC_FORMULA_TO_CASK  retry cask-hinted formulae      (true)
    BREWSYNC_CASK_TO_FORMULA  retry failed casks as formulae  (false)
"""

from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError

from brewsync.core.errors import ConfigError

ENV_PREFIX = "BREWSYNC_"


class Settings(BaseModel):
    workers: int = Field(default=4, ge=1, le=32)
    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_seconds: float = Field(default=2.0, ge=0.0)
    skip_preflight: bool = False
    formula_to_cask: bool = True
    cask_to_formula: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``BREWSYNC_*`` variables.

        Raises:
            ConfigError: A variable has an invalid value.
        """
        env = os.environ if environ is None else environ
        raw: dict[str, str] = {}
        for name in cls.model_fields:
            value = env.get(ENV_PREFIX + name.upper())
            if value is not None and value != "":
                raw[name] = value
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid {ENV_PREFIX}* environment setting: {e}") from e
