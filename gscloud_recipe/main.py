"""
gscloud-recipe — CLI entrypoint.

Usage:
    gscloud-recipe --help
    gscloud-recipe install
    gscloud-recipe test
    gscloud-recipe recipe check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from gscloud_recipe import __version__
from gscloud_recipe.core.observability.logging_config import resolve_level, setup_logging

_PATH = click.Path(path_type=Path, file_okay=False)


@click.group()
@click.version_option(version=__version__, prog_name="gscloud-recipe")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """gscloud-recipe — fetch, verify, build and install gscloud."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get("GSR_LOG_FILE"),
        log_file_level=os.environ.get("GSR_LOG_FILE_LEVEL"),
    )


def _print_steps(result) -> None:
    """One line per executed action, then the actions that never ran."""
    report = result.report
    plan = result.plan
    if report is None or plan is None:
        return
    names = {a.id: a.name for a in plan.actions}
    for receipt in report.receipts:
        label = names.get(receipt.action_id, receipt.action_id)
        if receipt.ok:
            click.secho(f"   ✓ {label}", fg="green", nl=False)
            click.echo(f"  ({receipt.duration_ms}ms)")
        elif receipt.status == "skipped":
            click.secho(f"   ⊘ {label}", fg="yellow", nl=False)
            click.echo(f"  {receipt.output}")
        else:
            click.secho(f"   ✗ {label}", fg="red")
    for action_id in report.not_run:
        click.secho(f"   · {names.get(action_id, action_id)} (not run)", dim=True)


def _finish(result, as_json: bool, success: str) -> None:
    """Print the outcome and exit 1 on failure."""
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    _print_steps(result)
    if not result.ok:
        kind = f" [{result.error_kind}]" if result.error_kind else ""
        click.secho(f"\n❌ {result.error}{kind}", fg="red")
        sys.exit(1)

    click.secho(f"\n✅ {success}", fg="green", bold=True)


@cli.command()
@click.argument("recipe", required=False)
@click.option("--version", "release", default=None, help="Override the release version.")
@click.option("--url", default=None, help="Override the archive URL.")
@click.option("--sha256", default=None, help="Override the archive checksum.")
@click.option("--head", is_flag=True, help="Build the head branch from git.")
@click.option("--prefix", type=_PATH, default=None, help="Install prefix (default: ~/.local).")
@click.option("--cache-dir", type=_PATH, default=None, help="Cache directory.")
@click.option("--dry-run", is_flag=True, help="Plan and validate, but don't execute.")
@click.option("--keep-workdir", is_flag=True, help="Keep the scratch directory.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    recipe: str | None,
    release: str | None,
    url: str | None,
    sha256: str | None,
    head: bool,
    prefix: Path | None,
    cache_dir: Path | None,
    dry_run: bool,
    keep_workdir: bool,
    as_json: bool,
) -> None:
    """Fetch, verify, build and install a recipe.

    Examples:

        gscloud-recipe install

        gscloud-recipe install --prefix /opt/gscloud

        gscloud-recipe install --head
    """
    from gscloud_recipe.core.use_cases.install import run_install

    result = run_install(
        recipe,
        version=release,
        url=url,
        sha256=sha256,
        head=head,
        prefix=prefix,
        cache_dir=cache_dir,
        dry_run=dry_run,
        keep_workdir=keep_workdir,
    )

    if not as_json and result.recipe is not None and not ctx.obj.get("quiet"):
        label = "HEAD" if head else result.recipe.version
        mode = " (dry run)" if dry_run else ""
        click.secho(f"\n📦 {result.recipe.name} {label}{mode}", fg="cyan", bold=True)

    if dry_run:
        _finish(result, as_json, "Dry run complete, nothing was changed")
        return

    artifacts = result.artifacts
    _finish(result, as_json, f"Installed {artifacts.name} {artifacts.version}" if artifacts else "")
    if artifacts is not None:
        click.echo(f"   🔧 {artifacts.binary}")
        for shell, path in sorted(artifacts.completions.items()):
            click.echo(f"   🐚 {shell}: {path}")
    if result.workdir is not None:
        click.echo(f"   📁 Working directory kept: {result.workdir}")
    click.echo()


@cli.command()
@click.argument("recipe", required=False)
@click.option("--version", "release", default=None, help="Version the binary must report.")
@click.option("--prefix", type=_PATH, default=None, help="Install prefix (default: ~/.local).")
@click.option("--cache-dir", type=_PATH, default=None, help="Cache directory.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def test(
    recipe: str | None,
    release: str | None,
    prefix: Path | None,
    cache_dir: Path | None,
    as_json: bool,
) -> None:
    """Smoke-test the installed binary."""
    from gscloud_recipe.core.use_cases.smoke_test import run_test

    result = run_test(recipe, version=release, prefix=prefix, cache_dir=cache_dir)
    name = result.recipe.name if result.recipe else "recipe"
    _finish(result, as_json, f"{name} smoke test passed")
    click.echo()


@cli.command()
@click.argument("recipe", required=False)
@click.option("--version", "release", default=None, help="Override the release version.")
@click.option("--url", default=None, help="Override the archive URL.")
@click.option("--sha256", default=None, help="Override the archive checksum.")
@click.option("--cache-dir", type=_PATH, default=None, help="Cache directory.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def fetch(
    recipe: str | None,
    release: str | None,
    url: str | None,
    sha256: str | None,
    cache_dir: Path | None,
    as_json: bool,
) -> None:
    """Download and verify the release archive without building."""
    from gscloud_recipe.core.use_cases.fetch import run_fetch

    result = run_fetch(recipe, version=release, url=url, sha256=sha256, cache_dir=cache_dir)
    archive = result.report.variables.get("archive", "") if result.report else ""
    _finish(result, as_json, f"Verified {archive}")
    click.echo()


@cli.command()
@click.argument("recipe", required=False)
@click.option("--prefix", type=_PATH, default=None, help="Install prefix (default: ~/.local).")
@click.option("--cache-dir", type=_PATH, default=None, help="Cache directory.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def completions(
    recipe: str | None,
    prefix: Path | None,
    cache_dir: Path | None,
    as_json: bool,
) -> None:
    """Regenerate shell completions from the installed binary."""
    from gscloud_recipe.core.use_cases.completions import run_completions

    result = run_completions(recipe, prefix=prefix, cache_dir=cache_dir)
    _finish(result, as_json, "Completions regenerated")
    click.echo()


@cli.command()
@click.argument("recipe", required=False)
@click.option("--prefix", type=_PATH, default=None, help="Install prefix (default: ~/.local).")
@click.option("--cache-dir", type=_PATH, default=None, help="Cache directory.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def info(
    recipe: str | None,
    prefix: Path | None,
    cache_dir: Path | None,
    as_json: bool,
) -> None:
    """Show recipe metadata and install state."""
    from gscloud_recipe.core.use_cases.info import get_info

    result = get_info(recipe, prefix=prefix, cache_dir=cache_dir)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    r = result.recipe
    assert r is not None
    click.secho(f"\n📋 {r.name} {r.version}", fg="cyan", bold=True)
    if r.desc:
        click.echo(f"   {r.desc}")
    if r.homepage:
        click.echo(f"   🌐 {r.homepage}")
    if r.license:
        click.echo(f"   ⚖️  {r.license}")
    click.echo(f"   📦 {r.url}")
    click.echo(f"      sha256 {r.sha256}")
    if r.head:
        click.echo(f"   🌿 head: {r.head.url} ({r.head.branch})")
    click.echo(f"   🔨 {r.build.toolchain} build {r.build.package}")

    click.echo()
    installed = result.installed
    if installed is None:
        click.secho("   Not installed", fg="yellow")
    else:
        click.secho(f"   Installed: {installed.version} ({installed.source})", fg="green")
        click.echo(f"     at {installed.installed_at}")
        click.echo(f"     {installed.binary}")
        if not result.binary_present:
            click.secho("     ⚠️  binary missing from prefix", fg="yellow")

    click.echo()
    for name, status in result.adapters.items():
        if status["available"]:
            click.secho(f"   ✓ {name}", fg="green")
        else:
            click.secho(f"   ✗ {name} (unavailable)", fg="red")
    click.echo()


# ── Sub-groups ──────────────────────────────────────────────────

from gscloud_recipe.ui.cli.recipe import recipe  # noqa: E402

cli.add_command(recipe)


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
