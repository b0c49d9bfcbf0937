"""
Recipe loader — reads recipe YAML into domain models.

This is the primary entry point for loading recipes. It reads YAML,
validates against Pydantic schemas, and returns typed domain objects.
Built-in recipes go through the same validation.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from gscloud_recipe.core.data.recipes import BUILTIN_RECIPES
from gscloud_recipe.core.models.recipe import Recipe

logger = logging.getLogger(__name__)

# Default recipe filename
RECIPE_FILE = "recipe.yml"


class ConfigError(Exception):
    """Raised when a recipe is invalid or missing."""


def find_recipe_file(start_dir: Path | None = None) -> Path | None:
    """Search for recipe.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to recipe.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / RECIPE_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_recipe(path: Path) -> Recipe:
    """Load and validate a recipe file.

    The YAML may wrap everything under a ``recipe`` key or be flat.
    A missing ``name`` defaults to the file's parent directory name
    for ``recipe.yml`` and to the file stem otherwise.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Recipe file not found: {path}")

    logger.debug("Loading recipe from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    recipe_data = data["recipe"] if isinstance(data.get("recipe"), dict) else data
    if "name" not in recipe_data:
        default_name = path.parent.name if path.name == RECIPE_FILE else path.stem
        recipe_data = {"name": default_name, **recipe_data}

    try:
        recipe = Recipe.model_validate(recipe_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid recipe {path}: {e}") from e

    logger.info("Loaded recipe '%s' %s from %s", recipe.name, recipe.version, path)
    return recipe


def builtin_recipe(name: str) -> Recipe:
    """Validate and return a built-in recipe by name.

    Raises:
        ConfigError: If no built-in recipe has that name.
    """
    data = BUILTIN_RECIPES.get(name)
    if data is None:
        known = ", ".join(sorted(BUILTIN_RECIPES))
        raise ConfigError(f"Unknown recipe '{name}'. Built-in recipes: {known}")
    try:
        return Recipe.model_validate({"name": name, **data})
    except ValidationError as e:
        raise ConfigError(f"Invalid built-in recipe '{name}': {e}") from e


def resolve_recipe(ref: str | None = None) -> Recipe:
    """Resolve a recipe reference.

    ``ref`` is a path to a YAML file, or the name of a built-in recipe.
    With no ``ref``, the nearest ``recipe.yml`` is used, falling back
    to the ``gscloud`` built-in.
    """
    if ref is None:
        found = find_recipe_file()
        if found is not None:
            return load_recipe(found)
        return builtin_recipe("gscloud")

    candidate = Path(ref)
    if candidate.suffix in (".yml", ".yaml") or candidate.is_file():
        return load_recipe(candidate)
    return builtin_recipe(ref)


def list_builtin_recipes() -> list[str]:
    """Names of all built-in recipes, sorted."""
    return sorted(BUILTIN_RECIPES)
