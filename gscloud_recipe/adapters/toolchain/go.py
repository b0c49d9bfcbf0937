"""
Go toolchain adapter — the Build step.

Action params:
    build (dict): ``BuildConfig`` as dumped by ``model_dump``.
    source_dir (str): Source tree to build in.
    output (str): Path of the binary to produce.
    version (str): Release version for the linker flags.
    timeout (int): Build timeout in seconds.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from gscloud_recipe.adapters.base import Adapter, ExecutionContext
from gscloud_recipe.core.errors import RecipeError
from gscloud_recipe.core.models.action import Receipt
from gscloud_recipe.core.models.recipe import BuildConfig
from gscloud_recipe.core.services.build import run_build


class GoBuildAdapter(Adapter):
    """Compile a Go module with ``go build``."""

    @property
    def name(self) -> str:
        return "go"

    def is_available(self) -> bool:
        return shutil.which("go") is not None

    def failure_kind(self, context: ExecutionContext) -> str:
        return "build"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        for key in ("build", "source_dir", "output", "version"):
            if not context.params.get(key):
                return False, f"Missing required param: '{key}'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        build = BuildConfig.model_validate(context.params["build"])
        output = context.path("output")
        try:
            result = run_build(
                build,
                Path(context.params["source_dir"]),
                output,
                context.params["version"],
                timeout=context.params.get("timeout", 1800),
            )
        except RecipeError as e:
            return self.fail(context, e, output=str(output))

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Built {output}",
            metadata={
                "command": result["command"],
                "exports": {"binary": result["binary"]},
            },
        )
