"""
Smoke test use case — check the installed binary still works.

Runs the recipe's assertions (for gscloud: ``version`` reports the
release, ``help`` prints the banner) in a scratch directory holding
the placeholder config. A failure is a test failure; the install is
left as it is.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gscloud_recipe.adapters.registry import AdapterRegistry
from gscloud_recipe.core.config.loader import ConfigError, resolve_recipe
from gscloud_recipe.core.config.settings import Settings
from gscloud_recipe.core.engine.executor import build_test_plan, execute_plan
from gscloud_recipe.core.models.recipe import InstallLayout, Recipe
from gscloud_recipe.core.persistence.state_file import load_state
from gscloud_recipe.core.use_cases.common import (
    RunResult,
    audit,
    cleanup_workdir,
    default_registry,
    make_workdir,
)

logger = logging.getLogger(__name__)


def installed_version(recipe: Recipe, settings: Settings) -> str:
    """Version recorded for the install under ``settings.prefix``.

    Falls back to the recipe's version when there is no matching record.
    """
    record = load_state(settings.state_path).get(recipe.name)
    if record is not None and Path(record.prefix) == settings.prefix:
        return record.version
    return recipe.version


def run_test(
    recipe_ref: str | None = None,
    *,
    recipe: Recipe | None = None,
    version: str | None = None,
    prefix: Path | None = None,
    cache_dir: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> RunResult:
    """Run the smoke test against the installed binary.

    Args:
        recipe_ref: Built-in recipe name or path to a recipe YAML.
        recipe: An already loaded recipe.
        version: Version the binary must report (default: install record).
        prefix: Install prefix (default: settings).
        cache_dir: Cache directory (default: settings).
        registry: Pre-configured adapter registry.
    """
    result = RunResult(operation="test")

    try:
        if recipe is None:
            recipe = resolve_recipe(recipe_ref)
        result.recipe = recipe
        result.settings = Settings.from_env(prefix=prefix, cache_dir=cache_dir)
    except ConfigError as e:
        return result.fail(str(e), "config")

    settings = result.settings
    if not recipe.smoke_test:
        return result.fail(f"Recipe '{recipe.name}' defines no smoke test", "config")

    binary = InstallLayout(prefix=settings.prefix).binary(recipe.name)
    if not binary.is_file():
        return result.fail(
            f"{recipe.name} is not installed under {settings.prefix} (no {binary})",
            "config",
        )

    expected_version = version or installed_version(recipe, settings)
    workdir = make_workdir(settings, recipe)
    plan = build_test_plan(recipe, settings, expected_version)
    result.plan = plan

    report = execute_plan(plan, registry or default_registry(), workdir)
    result.report = report
    if not report.all_ok:
        failed = report.failed_receipt
        assert failed is not None
        result.fail(failed.error or "Smoke test failed", report.error_kind or "assertion")
    else:
        logger.info("Smoke test passed for %s %s", recipe.name, expected_version)

    audit(result, {"prefix": str(settings.prefix)})
    cleanup_workdir(workdir)
    return result
