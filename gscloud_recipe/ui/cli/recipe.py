"""
CLI commands for recipes — validate and list.
"""

from __future__ import annotations

import json
import sys

import click


@click.group()
def recipe() -> None:
    """Recipes — check, list."""


@recipe.command("check")
@click.argument("ref", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def recipe_check(ref: str | None, as_json: bool) -> None:
    """Validate a recipe (built-in name or YAML path)."""
    from gscloud_recipe.core.use_cases.recipe_check import check_recipe

    result = check_recipe(ref)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.recipe is not None
        click.secho("✅ Recipe is valid", fg="green", bold=True)
        click.echo(f"   Recipe: {result.recipe.name} {result.recipe.version}")
        click.echo(f"   Toolchain: {result.recipe.build.toolchain}")
        click.echo(f"   Completions: {', '.join(s.shell for s in result.recipe.completions) or '-'}")
    else:
        click.secho("❌ Recipe errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@recipe.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def recipe_list(as_json: bool) -> None:
    """List built-in recipes."""
    from gscloud_recipe.core.config.loader import builtin_recipe, list_builtin_recipes

    recipes = [builtin_recipe(name) for name in list_builtin_recipes()]

    if as_json:
        click.echo(json.dumps(
            [{"name": r.name, "version": r.version, "desc": r.desc} for r in recipes],
            indent=2,
        ))
        return

    click.secho("📚 Built-in recipes:", fg="cyan", bold=True)
    for r in recipes:
        click.echo(f"   • {r.name:<12} {r.version:<10} {r.desc}")
    click.echo()
