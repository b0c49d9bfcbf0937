"""
Info use case — recipe metadata plus what is installed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gscloud_recipe.adapters.registry import AdapterRegistry
from gscloud_recipe.core.config.loader import ConfigError, resolve_recipe
from gscloud_recipe.core.config.settings import Settings
from gscloud_recipe.core.models.recipe import InstallLayout, Recipe
from gscloud_recipe.core.models.state import InstalledArtifacts
from gscloud_recipe.core.persistence.state_file import load_state
from gscloud_recipe.core.use_cases.common import default_registry


@dataclass
class InfoResult:
    """Recipe details and its install record, if any."""

    recipe: Recipe | None = None
    settings: Settings | None = None
    installed: InstalledArtifacts | None = None
    binary_present: bool = False
    adapters: dict[str, dict[str, Any]] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.recipe is not None
        result: dict = {
            "recipe": self.recipe.model_dump(mode="json"),
            "binary_present": self.binary_present,
            "installed": self.installed.model_dump(mode="json") if self.installed else None,
            "adapters": self.adapters,
        }
        if self.settings is not None:
            result["prefix"] = str(self.settings.prefix)
        return result


def get_info(
    recipe_ref: str | None = None,
    *,
    prefix: Path | None = None,
    cache_dir: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> InfoResult:
    """Load a recipe, look up its install record and probe the adapters.

    ``adapters`` tells whether each tool a run needs (``go`` for the
    build, ...) is usable on this machine right now.
    """
    result = InfoResult()
    try:
        result.recipe = resolve_recipe(recipe_ref)
        result.settings = Settings.from_env(prefix=prefix, cache_dir=cache_dir)
    except ConfigError as e:
        result.error = str(e)
        return result

    settings = result.settings
    result.installed = load_state(settings.state_path).get(result.recipe.name)
    binary = InstallLayout(prefix=settings.prefix).binary(result.recipe.name)
    result.binary_present = binary.is_file()
    result.adapters = (registry or default_registry()).adapter_status()
    return result
