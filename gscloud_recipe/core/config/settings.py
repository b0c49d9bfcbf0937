"""
Runtime settings — where things go and how long commands may take.

Resolved in precedence order:
    CLI flag  >  GSR_* environment variable  >  default
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from gscloud_recipe.core.config.loader import ConfigError

logger = logging.getLogger(__name__)

_DEFAULT_PREFIX = Path.home() / ".local"
_DEFAULT_CACHE_DIR = Path.home() / ".cache" / "gscloud-recipe"

_ENV_VARS = {
    "prefix": "GSR_PREFIX",
    "cache_dir": "GSR_CACHE_DIR",
    "command_timeout": "GSR_COMMAND_TIMEOUT",
    "build_timeout": "GSR_BUILD_TIMEOUT",
}


class Settings(BaseModel):
    """Process-wide settings for a recipe run."""

    prefix: Path = _DEFAULT_PREFIX
    cache_dir: Path = _DEFAULT_CACHE_DIR
    command_timeout: int = Field(default=120, gt=0)   # completion / test commands
    build_timeout: int = Field(default=1800, gt=0)    # fetch and go build

    @property
    def downloads_dir(self) -> Path:
        return self.cache_dir / "downloads"

    @property
    def builds_dir(self) -> Path:
        return self.cache_dir / "builds"

    @property
    def audit_path(self) -> Path:
        return self.cache_dir / "audit.ndjson"

    @property
    def state_path(self) -> Path:
        return self.cache_dir / "installed.json"

    @classmethod
    def from_env(cls, **overrides: object) -> Settings:
        """Build settings from GSR_* variables, then apply non-None overrides.

        Raises:
            ConfigError: If a value does not validate.
        """
        data: dict[str, object] = {}
        for field_name, env_name in _ENV_VARS.items():
            value = os.environ.get(env_name)
            if value:
                data[field_name] = value
        for key, value in overrides.items():
            if value is not None:
                data[key] = value

        try:
            settings = cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}") from e

        settings.prefix = settings.prefix.expanduser()
        settings.cache_dir = settings.cache_dir.expanduser()
        logger.debug("Settings: prefix=%s cache_dir=%s", settings.prefix, settings.cache_dir)
        return settings
