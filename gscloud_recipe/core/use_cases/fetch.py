"""
Fetch use case — download and verify a release archive without building.

Leaves the verified archive in the download cache, where a later
install picks it up.
"""

from __future__ import annotations

from pathlib import Path

from gscloud_recipe.adapters.registry import AdapterRegistry
from gscloud_recipe.core.config.loader import ConfigError, resolve_recipe
from gscloud_recipe.core.config.settings import Settings
from gscloud_recipe.core.engine.executor import build_fetch_plan, execute_plan
from gscloud_recipe.core.use_cases.common import (
    RunResult,
    audit,
    cleanup_workdir,
    default_registry,
    make_workdir,
)


def run_fetch(
    recipe_ref: str | None = None,
    *,
    version: str | None = None,
    url: str | None = None,
    sha256: str | None = None,
    cache_dir: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> RunResult:
    """Fetch+Verify only. ``report.variables["archive"]`` is the cached file."""
    result = RunResult(operation="fetch")

    try:
        recipe = resolve_recipe(recipe_ref)
        if version or url or sha256:
            recipe = recipe.with_overrides(version=version, url=url, sha256=sha256)
        result.recipe = recipe
        result.settings = Settings.from_env(cache_dir=cache_dir)
    except (ConfigError, ValueError) as e:
        return result.fail(str(e), "config")

    workdir = make_workdir(result.settings, recipe)
    plan = build_fetch_plan(recipe, result.settings, workdir)
    result.plan = plan

    report = execute_plan(plan, registry or default_registry(), workdir)
    result.report = report
    if not report.all_ok:
        failed = report.failed_receipt
        assert failed is not None
        result.fail(failed.error or "Fetch failed", report.error_kind or "fetch")

    audit(result)
    cleanup_workdir(workdir)
    return result
