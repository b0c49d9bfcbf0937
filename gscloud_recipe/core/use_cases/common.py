"""
Shared plumbing for the use cases — result type, registry, scratch dirs.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from gscloud_recipe.adapters.registry import AdapterRegistry
from gscloud_recipe.core.config.settings import Settings
from gscloud_recipe.core.engine.executor import InstallPlan, InstallReport, write_audit_entry
from gscloud_recipe.core.models.recipe import Recipe
from gscloud_recipe.core.models.state import InstalledArtifacts
from gscloud_recipe.core.persistence.audit import AuditWriter

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one use case run (install, test, fetch, completions)."""

    operation: str = ""
    recipe: Recipe | None = None
    settings: Settings | None = None
    plan: InstallPlan | None = None
    report: InstallReport | None = None
    artifacts: InstalledArtifacts | None = None
    workdir: Path | None = None
    dry_run: bool = False
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        if self.error:
            return False
        return self.report is not None and self.report.all_ok

    def fail(self, error: str, kind: str = "recipe") -> RunResult:
        self.error = error
        self.error_kind = kind
        return self

    def to_dict(self) -> dict:
        result: dict = {"operation": self.operation, "ok": self.ok}
        if self.recipe is not None:
            result["recipe"] = self.recipe.name
            result["version"] = self.report.version if self.report else self.recipe.version
        if self.error:
            result["error"] = self.error
            result["error_kind"] = self.error_kind
        if self.settings is not None:
            result["prefix"] = str(self.settings.prefix)
        if self.dry_run:
            result["dry_run"] = True
        if self.workdir is not None:
            result["workdir"] = str(self.workdir)
        if self.report is not None:
            result["report"] = self.report.to_dict()
        if self.artifacts is not None:
            result["artifacts"] = self.artifacts.model_dump(mode="json")
        return result


def default_registry(mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every adapter a recipe run needs."""
    from gscloud_recipe.adapters.shell.binary import BinaryAdapter
    from gscloud_recipe.adapters.shell.filesystem import FilesystemAdapter
    from gscloud_recipe.adapters.source.fetch import SourceAdapter
    from gscloud_recipe.adapters.toolchain.go import GoBuildAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(SourceAdapter())
    registry.register(GoBuildAdapter())
    registry.register(FilesystemAdapter())
    registry.register(BinaryAdapter())
    return registry


def make_workdir(settings: Settings, recipe: Recipe) -> Path:
    """Fresh scratch directory for one run."""
    settings.builds_dir.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=f"{recipe.name}-", dir=settings.builds_dir))


def cleanup_workdir(workdir: Path | None, keep: bool = False) -> None:
    """Remove a scratch directory unless asked to keep it."""
    if workdir is None:
        return
    if keep:
        logger.info("Keeping working directory %s", workdir)
        return
    shutil.rmtree(workdir, ignore_errors=True)


def audit(result: RunResult, context: dict | None = None) -> None:
    """Append the run to the audit ledger (skipped for dry runs)."""
    if result.report is None or result.settings is None or result.dry_run:
        return
    write_audit_entry(result.report, AuditWriter(result.settings.audit_path), context)
