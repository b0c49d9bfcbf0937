"""
Filesystem adapter — placeholder files and the final install.

Provides a receipt-returning interface for the filesystem side effects
of a run, so the engine can dry-run and audit them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gscloud_recipe.adapters.base import Adapter, ExecutionContext
from gscloud_recipe.core.errors import InstallError
from gscloud_recipe.core.models.action import Receipt
from gscloud_recipe.core.services.binary import bootstrap_config, install_files

logger = logging.getLogger(__name__)

_OPERATIONS = {"touch", "install"}


class FilesystemAdapter(Adapter):
    """Create empty files, or install staged files.

    Action params:
        operation (str): ``touch`` (empty files, existing ones kept) or
            ``install``.
        paths (list[str]): ``touch`` targets, relative to the working
            directory or absolute.
        files (list[dict]): ``install`` entries with ``src``, ``dest``
            and an optional octal ``mode`` (default 0o644).
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def failure_kind(self, context: ExecutionContext) -> str:
        return "install" if context.params.get("operation") == "install" else "recipe"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in _OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_OPERATIONS))}"
        if operation != "install":
            if not isinstance(context.params.get("paths"), list):
                return False, "Missing required param: 'paths' (list)"
            return True, ""

        files = context.params.get("files")
        if not isinstance(files, list) or not files:
            return False, "Missing required param: 'files' (list)"
        for entry in files:
            if not entry.get("src") or not entry.get("dest"):
                return False, f"Install entry needs 'src' and 'dest': {entry}"
            # Staged files only exist once earlier steps ran
            if not context.dry_run and not Path(entry["src"]).is_file():
                return False, f"Staged file not found: {entry['src']}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.params["operation"]
        if operation == "install":
            return self._install(context)

        paths: list[str] = context.params["paths"]
        try:
            done = [str(p) for p in bootstrap_config(Path(context.workdir), paths)]
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "paths": paths},
            )

        logger.debug("%s: %s", operation, done)
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output="\n".join(done),
            metadata={"operation": operation, "paths": done},
        )

    def _install(self, context: ExecutionContext) -> Receipt:
        files = [
            (Path(entry["src"]), Path(entry["dest"]), int(entry.get("mode", 0o644)))
            for entry in context.params["files"]
        ]
        try:
            installed = install_files(files)
        except InstallError as e:
            return self.fail(context, e, operation="install")

        logger.info("Installed %d file(s): %s", len(installed), ", ".join(map(str, installed)))
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output="\n".join(map(str, installed)),
            metadata={"operation": "install", "paths": [str(p) for p in installed]},
        )
