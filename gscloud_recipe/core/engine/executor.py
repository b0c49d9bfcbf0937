"""
Engine executor — turns a recipe into ordered actions and runs them.

Flow:
    recipe → plan (fetch → build → bootstrap → completions → install) → execute → report → audit

Execution is strictly linear and fail-fast: every action runs at most
once, in plan order, and the first failed receipt stops the run. There
is no retry and no rollback: the build and the completion harvests work
on staged copies in the scratch directory, and nothing under the prefix
changes before the final install step.

Steps can export run variables (``receipt.metadata["exports"]``); later
action params reference them as ``{name}`` placeholders. This is how a
head build's ``HEAD-<sha>`` version reaches the linker flags.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from gscloud_recipe.adapters.registry import AdapterRegistry
from gscloud_recipe.core.config.settings import Settings
from gscloud_recipe.core.errors import ERROR_KINDS, RecipeError
from gscloud_recipe.core.models.action import Action, Receipt
from gscloud_recipe.core.models.recipe import InstallLayout, Recipe
from gscloud_recipe.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


@dataclass
class InstallPlan:
    """Ordered actions for one recipe run."""

    operation_id: str = ""
    operation: str = ""              # install, test, fetch, completions
    recipe: str = ""
    version: str = ""
    actions: list[Action] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)

    @property
    def total_actions(self) -> int:
        return len(self.actions)

    def add(self, phase: str, adapter: str, name: str, **params: Any) -> Action:
        """Append an action; its ID is ``<operation_id>:<index>:<phase>``."""
        action = Action(
            id=f"{self.operation_id}:{len(self.actions) + 1}:{phase}",
            name=name,
            adapter=adapter,
            phase=phase,
            params=params,
        )
        self.actions.append(action)
        return action


@dataclass
class InstallReport:
    """Result of executing a plan."""

    operation_id: str = ""
    operation: str = ""
    recipe: str = ""
    version: str = ""
    receipts: list[Receipt] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)
    not_run: list[str] = field(default_factory=list)   # action IDs after a failure

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.status == "skipped")

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        return "ok" if self.all_ok else "failed"

    @property
    def failed_receipt(self) -> Receipt | None:
        """The receipt that stopped the run, if any."""
        for receipt in self.receipts:
            if receipt.failed:
                return receipt
        return None

    @property
    def error_kind(self) -> str | None:
        receipt = self.failed_receipt
        return receipt.error_kind if receipt else None

    def receipts_for(self, phase: str) -> list[Receipt]:
        """Receipts whose action ID ends with ``:<phase>``."""
        return [r for r in self.receipts if r.action_id.endswith(f":{phase}")]

    def raise_for_status(self) -> None:
        """Raise the ``RecipeError`` subclass matching the failure, if any."""
        receipt = self.failed_receipt
        if receipt is None:
            return
        exc_type = ERROR_KINDS.get(receipt.error_kind or "recipe", RecipeError)
        raise exc_type(receipt.error or f"{receipt.action_id} failed")

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "operation": self.operation,
            "recipe": self.recipe,
            "version": self.version,
            "status": self.status,
            "error_kind": self.error_kind,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "not_run": self.not_run,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


# ── Planning ────────────────────────────────────────────────────────


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


def _fetch_action(
    plan: InstallPlan,
    recipe: Recipe,
    settings: Settings,
    workdir: Path,
    *,
    head: bool,
    extract: bool = True,
) -> None:
    if head:
        plan.add(
            "fetch", "source", f"Clone {recipe.name} head",
            mode="head",
            recipe=recipe.model_dump(mode="json"),
            dest=str(workdir / "src"),
            timeout=settings.build_timeout,
        )
        return
    plan.add(
        "fetch", "source", f"Fetch and verify {recipe.name} {recipe.version}",
        mode="tarball",
        recipe=recipe.model_dump(mode="json"),
        downloads_dir=str(settings.downloads_dir),
        dest=str(workdir / "src"),
        extract=extract,
        timeout=settings.command_timeout,
    )


def _bootstrap_action(plan: InstallPlan, recipe: Recipe) -> None:
    if recipe.bootstrap_config:
        plan.add(
            "bootstrap", "filesystem", "Create placeholder config",
            operation="touch",
            paths=list(recipe.bootstrap_config),
        )


def _staged_completion(workdir: Path, layout: InstallLayout, shell: str, name: str) -> Path:
    return workdir / "completions" / shell / layout.completion_path(shell, name).name


def _completion_actions(
    plan: InstallPlan,
    recipe: Recipe,
    binary: Path,
    layout: InstallLayout,
    settings: Settings,
    workdir: Path,
) -> None:
    for spec in recipe.completions:
        plan.add(
            "completions", "binary", f"Harvest {spec.shell} completion",
            operation="completion",
            binary=str(binary),
            completion=spec.model_dump(mode="json"),
            capture_to=str(_staged_completion(workdir, layout, spec.shell, recipe.name)),
            timeout=settings.command_timeout,
        )


def _install_action(
    plan: InstallPlan,
    recipe: Recipe,
    layout: InstallLayout,
    workdir: Path,
    *,
    binary: Path | None = None,
) -> None:
    """Move the staged binary (if any) and completions under the prefix."""
    files = []
    if binary is not None:
        files.append({"src": str(binary), "dest": str(layout.binary(recipe.name)), "mode": 0o755})
    for spec in recipe.completions:
        files.append({
            "src": str(_staged_completion(workdir, layout, spec.shell, recipe.name)),
            "dest": str(layout.completion_path(spec.shell, recipe.name)),
            "mode": 0o644,
        })
    if files:
        plan.add("install", "filesystem", f"Install into {layout.prefix}",
                 operation="install", files=files)


def build_install_plan(
    recipe: Recipe,
    settings: Settings,
    workdir: Path,
    *,
    head: bool = False,
    operation_id: str | None = None,
) -> InstallPlan:
    """Plan an install: fetch → build → bootstrap config → completions → install.

    The build writes ``<workdir>/bin/<name>`` and the completions are
    harvested from that binary into ``<workdir>/completions``. Only the
    last step touches the prefix, so a failed build or harvest leaves a
    previous install (binary, completions and record) as it was.
    """
    layout = InstallLayout(prefix=settings.prefix)
    plan = InstallPlan(
        operation_id=operation_id or generate_operation_id(),
        operation="install",
        recipe=recipe.name,
        version="HEAD" if head else recipe.version,
        variables={"version": "HEAD" if head else recipe.version},
    )

    staged_binary = workdir / "bin" / recipe.name

    _fetch_action(plan, recipe, settings, workdir, head=head)
    plan.add(
        "build", "go", f"Build {recipe.name}",
        build=recipe.build.model_dump(mode="json"),
        source_dir="{source_dir}",
        output=str(staged_binary),
        version="{version}",
        timeout=settings.build_timeout,
    )
    _bootstrap_action(plan, recipe)
    _completion_actions(plan, recipe, staged_binary, layout, settings, workdir)
    _install_action(plan, recipe, layout, workdir, binary=staged_binary)
    return plan


def build_test_plan(
    recipe: Recipe,
    settings: Settings,
    version: str,
    *,
    operation_id: str | None = None,
) -> InstallPlan:
    """Plan the smoke test: bootstrap config, then each assertion in order."""
    layout = InstallLayout(prefix=settings.prefix)
    plan = InstallPlan(
        operation_id=operation_id or generate_operation_id(),
        operation="test",
        recipe=recipe.name,
        version=version,
        variables={"version": version},
    )
    _bootstrap_action(plan, recipe)
    for assertion in recipe.smoke_test:
        plan.add(
            "test", "binary", f"{recipe.name} {' '.join(assertion.args)}",
            operation="assert",
            binary=str(layout.binary(recipe.name)),
            assertion=assertion.model_dump(mode="json"),
            version="{version}",
            timeout=settings.command_timeout,
        )
    return plan


def build_fetch_plan(
    recipe: Recipe,
    settings: Settings,
    workdir: Path,
    *,
    operation_id: str | None = None,
) -> InstallPlan:
    """Plan a fetch: download and verify the archive, without unpacking."""
    plan = InstallPlan(
        operation_id=operation_id or generate_operation_id(),
        operation="fetch",
        recipe=recipe.name,
        version=recipe.version,
        variables={"version": recipe.version},
    )
    _fetch_action(plan, recipe, settings, workdir, head=False, extract=False)
    return plan


def build_completions_plan(
    recipe: Recipe,
    settings: Settings,
    workdir: Path,
    version: str,
    *,
    operation_id: str | None = None,
) -> InstallPlan:
    """Plan a completion refresh: harvest from the installed binary, then install."""
    layout = InstallLayout(prefix=settings.prefix)
    plan = InstallPlan(
        operation_id=operation_id or generate_operation_id(),
        operation="completions",
        recipe=recipe.name,
        version=version,
        variables={"version": version},
    )
    _bootstrap_action(plan, recipe)
    _completion_actions(plan, recipe, layout.binary(recipe.name), layout, settings, workdir)
    _install_action(plan, recipe, layout, workdir)
    return plan


# ── Execution ───────────────────────────────────────────────────────


def render_params(value: Any, variables: dict[str, str]) -> Any:
    """Replace ``{name}`` placeholders in strings, recursively."""
    if isinstance(value, str):
        for key, replacement in variables.items():
            value = value.replace(f"{{{key}}}", replacement)
        return value
    if isinstance(value, list):
        return [render_params(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: render_params(v, variables) for k, v in value.items()}
    return value


def execute_plan(
    plan: InstallPlan,
    registry: AdapterRegistry,
    workdir: Path,
    dry_run: bool = False,
) -> InstallReport:
    """Execute the plan's actions in order, stopping at the first failure.

    Args:
        plan: The plan to run.
        registry: Adapter registry for dispatch.
        workdir: Scratch working directory (created if missing).
        dry_run: If True, validate but don't execute.
    """
    workdir.mkdir(parents=True, exist_ok=True)
    variables = dict(plan.variables)
    report = InstallReport(
        operation_id=plan.operation_id,
        operation=plan.operation,
        recipe=plan.recipe,
        version=plan.version,
    )

    for index, action in enumerate(plan.actions):
        params = render_params(action.params, variables)
        receipt = registry.execute_action(
            action=action,
            workdir=str(workdir),
            params=params,
            dry_run=dry_run,
        )
        report.receipts.append(receipt)

        status_marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
        logger.info("%s %s → %s", status_marker, action.name or action.id, receipt.status)

        if receipt.failed:
            logger.error("%s failed: %s", action.name or action.id, receipt.error)
            report.not_run = [a.id for a in plan.actions[index + 1:]]
            break

        variables.update(receipt.metadata.get("exports", {}))

    report.variables = variables
    report.version = variables.get("version", plan.version)
    return report


def write_audit_entry(
    report: InstallReport,
    audit_writer: AuditWriter,
    context: dict[str, Any] | None = None,
) -> None:
    """Append the result of a run to the audit ledger."""
    failed = report.failed_receipt
    entry = AuditEntry(
        operation_id=report.operation_id,
        operation=report.operation,
        recipe=report.recipe,
        version=report.version,
        status=report.status,
        error_kind=report.error_kind,
        actions_total=report.total,
        actions_succeeded=report.succeeded,
        actions_failed=report.failed,
        duration_ms=sum(r.duration_ms for r in report.receipts),
        errors=[failed.error] if failed and failed.error else [],
        context=context or {},
    )
    audit_writer.write(entry)
