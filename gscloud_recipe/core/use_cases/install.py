"""
Install use case — the full vertical slice of a recipe install.

resolve recipe → settings → plan → execute (fail-fast) → record → audit

Fetch+Verify always runs before the build: a checksum mismatch stops
the run before any compiler is invoked and no binary is produced. The
prefix is only written by the last step, after every harvest succeeded.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gscloud_recipe.adapters.registry import AdapterRegistry
from gscloud_recipe.core.config.loader import ConfigError, resolve_recipe
from gscloud_recipe.core.config.settings import Settings
from gscloud_recipe.core.engine.executor import InstallReport, build_install_plan, execute_plan
from gscloud_recipe.core.models.recipe import InstallLayout, Recipe
from gscloud_recipe.core.models.state import InstalledArtifacts
from gscloud_recipe.core.persistence.state_file import load_state, save_state
from gscloud_recipe.core.services.source import sha256_file
from gscloud_recipe.core.use_cases.common import (
    RunResult,
    audit,
    cleanup_workdir,
    default_registry,
    make_workdir,
)

logger = logging.getLogger(__name__)


def record_artifacts(
    recipe: Recipe,
    settings: Settings,
    report: InstallReport,
    *,
    head: bool = False,
) -> InstalledArtifacts:
    """Describe what an install produced and store it in the install state."""
    layout = InstallLayout(prefix=settings.prefix)
    binary = layout.binary(recipe.name)

    completions: dict[str, str] = {}
    digests: dict[str, str] = {}
    for receipt in report.receipts_for("completions"):
        shell = receipt.metadata.get("shell")
        if shell:
            completions[shell] = str(layout.completion_path(shell, recipe.name))
            digests[shell] = receipt.metadata.get("sha256", "")

    artifacts = InstalledArtifacts(
        name=recipe.name,
        version=report.version,
        source="head" if head else "tarball",
        prefix=str(settings.prefix),
        binary=str(binary),
        binary_sha256=sha256_file(binary) if binary.is_file() else "",
        completions=completions,
        completion_sha256=digests,
    )

    state = load_state(settings.state_path)
    state.record(artifacts)
    save_state(state, settings.state_path)
    return artifacts


def run_install(
    recipe_ref: str | None = None,
    *,
    recipe: Recipe | None = None,
    version: str | None = None,
    url: str | None = None,
    sha256: str | None = None,
    head: bool = False,
    prefix: Path | None = None,
    cache_dir: Path | None = None,
    dry_run: bool = False,
    keep_workdir: bool = False,
    registry: AdapterRegistry | None = None,
) -> RunResult:
    """Fetch, verify, build and install a recipe.

    Args:
        recipe_ref: Built-in recipe name or path to a recipe YAML.
        recipe: An already loaded recipe (takes precedence over ``recipe_ref``).
        version: Override the release version.
        url: Override the archive URL.
        sha256: Override the archive checksum.
        head: Build the head branch from git instead of the release.
        prefix: Install prefix (default: settings).
        cache_dir: Cache directory (default: settings).
        dry_run: Plan and validate only.
        keep_workdir: Keep the scratch directory after the run.
        registry: Pre-configured adapter registry.

    Returns:
        RunResult; ``error``/``error_kind`` are set on failure.
    """
    result = RunResult(operation="install", dry_run=dry_run)

    try:
        if recipe is None:
            recipe = resolve_recipe(recipe_ref)
        if version or url or sha256:
            recipe = recipe.with_overrides(version=version, url=url, sha256=sha256)
        result.recipe = recipe
        result.settings = Settings.from_env(prefix=prefix, cache_dir=cache_dir)
    except (ConfigError, ValueError) as e:
        return result.fail(str(e), "config")

    if head and recipe.head is None:
        return result.fail(f"Recipe '{recipe.name}' has no head repository", "config")

    settings = result.settings
    workdir = make_workdir(settings, recipe)
    result.workdir = workdir

    plan = build_install_plan(recipe, settings, workdir, head=head)
    result.plan = plan
    logger.info(
        "Installing %s %s into %s (%d steps)",
        recipe.name, plan.version, settings.prefix, plan.total_actions,
    )

    report = execute_plan(plan, registry or default_registry(), workdir, dry_run=dry_run)
    result.report = report

    if report.all_ok and not dry_run:
        result.artifacts = record_artifacts(recipe, settings, report, head=head)
        logger.info("Installed %s %s", recipe.name, report.version)
    elif not report.all_ok:
        failed = report.failed_receipt
        assert failed is not None
        result.fail(failed.error or "Install failed", report.error_kind or "recipe")

    audit(result, {"prefix": str(settings.prefix), "head": head})
    cleanup_workdir(workdir, keep=keep_workdir)
    if not keep_workdir:
        result.workdir = None
    return result
