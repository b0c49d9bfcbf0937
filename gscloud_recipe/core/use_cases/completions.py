"""
Completions use case — re-harvest completion scripts from the installed binary.

Completion scripts are derived from the binary. Whenever the binary
changes (a manual rebuild, a copied-in binary) they must be generated
again; this runs the bootstrap, harvest and install steps of an install,
without the fetch and build.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gscloud_recipe.adapters.registry import AdapterRegistry
from gscloud_recipe.core.config.loader import ConfigError, resolve_recipe
from gscloud_recipe.core.config.settings import Settings
from gscloud_recipe.core.engine.executor import build_completions_plan, execute_plan
from gscloud_recipe.core.models.recipe import InstallLayout, Recipe
from gscloud_recipe.core.persistence.state_file import load_state, save_state
from gscloud_recipe.core.use_cases.common import (
    RunResult,
    audit,
    cleanup_workdir,
    default_registry,
    make_workdir,
)
from gscloud_recipe.core.use_cases.smoke_test import installed_version

logger = logging.getLogger(__name__)


def run_completions(
    recipe_ref: str | None = None,
    *,
    prefix: Path | None = None,
    cache_dir: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> RunResult:
    """Regenerate the installed completion scripts."""
    result = RunResult(operation="completions")

    try:
        recipe = resolve_recipe(recipe_ref)
        result.recipe = recipe
        result.settings = Settings.from_env(prefix=prefix, cache_dir=cache_dir)
    except ConfigError as e:
        return result.fail(str(e), "config")

    settings = result.settings
    binary = InstallLayout(prefix=settings.prefix).binary(recipe.name)
    if not binary.is_file():
        return result.fail(
            f"{recipe.name} is not installed under {settings.prefix} (no {binary})",
            "config",
        )

    workdir = make_workdir(settings, recipe)
    plan = build_completions_plan(recipe, settings, workdir, installed_version(recipe, settings))
    result.plan = plan

    report = execute_plan(plan, registry or default_registry(), workdir)
    result.report = report

    if not report.all_ok:
        failed = report.failed_receipt
        assert failed is not None
        result.fail(failed.error or "Completion harvest failed", report.error_kind or "completion")
    else:
        _update_record(recipe, settings, report.receipts_for("completions"))

    audit(result, {"prefix": str(settings.prefix)})
    cleanup_workdir(workdir)
    return result


def _update_record(recipe: Recipe, settings: Settings, receipts: list) -> None:
    """Refresh completion digests in the install record, if there is one."""
    layout = InstallLayout(prefix=settings.prefix)
    state = load_state(settings.state_path)
    record = state.get(recipe.name)
    if record is None or Path(record.prefix) != settings.prefix:
        return
    for receipt in receipts:
        shell = receipt.metadata.get("shell")
        if shell:
            record.completions[shell] = str(layout.completion_path(shell, recipe.name))
            record.completion_sha256[shell] = receipt.metadata.get("sha256", "")
    state.record(record)
    save_state(state, settings.state_path)
