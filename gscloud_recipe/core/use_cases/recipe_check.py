"""
Recipe check use case — validate a recipe and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from gscloud_recipe.core.config.loader import ConfigError, resolve_recipe
from gscloud_recipe.core.models.recipe import Recipe, version_from_url
from gscloud_recipe.core.services.build import SUPPORTED_TOOLCHAINS, validate_toolchain


@dataclass
class RecipeCheckResult:
    """Result of recipe validation."""

    valid: bool = False
    recipe: Recipe | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "recipe": self.recipe.name if self.recipe else None,
            "version": self.recipe.version if self.recipe else None,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def check_recipe(recipe_ref: str | None = None) -> RecipeCheckResult:
    """Validate a recipe and report issues.

    Args:
        recipe_ref: Built-in recipe name or path to a recipe YAML.

    Returns:
        RecipeCheckResult with validation status and any issues.
    """
    result = RecipeCheckResult()

    try:
        recipe = resolve_recipe(recipe_ref)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.recipe = recipe

    build = recipe.build
    if build.toolchain not in SUPPORTED_TOOLCHAINS:
        result.errors.append(
            f"Unsupported toolchain '{build.toolchain}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_TOOLCHAINS))}"
        )
    elif not validate_toolchain([build.toolchain])["ok"]:
        result.warnings.append(f"'{build.toolchain}' is not on PATH; install will fail at the build step")

    if build.ldflags and not any("{version}" in flag for flag in build.ldflags):
        result.warnings.append(
            "No ldflag contains {version}; the binary will not report its release version"
        )

    derived = version_from_url(recipe.url)
    if derived is None:
        result.warnings.append(f"Version cannot be derived from url {recipe.url}")
    elif derived != recipe.version:
        result.warnings.append(
            f"Version {recipe.version} does not match the archive name ({derived})"
        )

    if recipe.head is not None and not recipe.head.branch:
        result.errors.append("Head repository has no branch")

    shells = [spec.shell for spec in recipe.completions]
    dupes = {s for s in shells if shells.count(s) > 1}
    if dupes:
        result.errors.append(f"Duplicate completion shells: {', '.join(sorted(dupes))}")

    if not recipe.smoke_test:
        result.warnings.append("No smoke test defined. 'test' will have nothing to check.")

    result.valid = len(result.errors) == 0
    return result
