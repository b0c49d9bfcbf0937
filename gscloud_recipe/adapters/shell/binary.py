"""
Built-binary adapter — runs the freshly built executable.

Two operations:

``completion``
    Run the binary's completion command and stage its stdout,
    unchanged, at ``capture_to`` in the working directory. Params: ``binary``, ``completion``
    (``CompletionSpec`` dict), ``capture_to``, ``timeout``.

``assert``
    Run the binary and require the expected text in its output.
    Params: ``binary``, ``assertion`` (``SmokeAssertion`` dict),
    ``version``, ``timeout``.

This runs untrusted, freshly compiled code; it always runs from the
scratch working directory.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from gscloud_recipe.adapters.base import Adapter, ExecutionContext
from gscloud_recipe.core.errors import RecipeError
from gscloud_recipe.core.models.action import Receipt
from gscloud_recipe.core.models.recipe import CompletionSpec, SmokeAssertion
from gscloud_recipe.core.services.binary import (
    check_assertion,
    harvest_completion,
    write_completion,
)

logger = logging.getLogger(__name__)

_REQUIRED = {
    "completion": ("binary", "completion", "capture_to"),
    "assert": ("binary", "assertion", "version"),
}


class BinaryAdapter(Adapter):
    """Invoke the built binary for completions and smoke checks."""

    @property
    def name(self) -> str:
        return "binary"

    def is_available(self) -> bool:
        return True

    def failure_kind(self, context: ExecutionContext) -> str:
        return "completion" if context.params.get("operation") == "completion" else "assertion"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in _REQUIRED:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_REQUIRED))}"
        for key in _REQUIRED[operation]:
            if not context.params.get(key):
                return False, f"Missing required param: '{key}'"
        # The binary only exists after the build ran
        if not context.dry_run and not Path(context.params["binary"]).is_file():
            return False, f"Binary not found: {context.params['binary']}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        if context.params["operation"] == "completion":
            return self._completion(context)
        return self._assert(context)

    def _completion(self, ctx: ExecutionContext) -> Receipt:
        spec = CompletionSpec.model_validate(ctx.params["completion"])
        target = ctx.path("capture_to")
        try:
            data = harvest_completion(
                Path(ctx.params["binary"]),
                spec,
                Path(ctx.workdir),
                timeout=ctx.params.get("timeout", 120),
            )
            write_completion(data, target)
        except RecipeError as e:
            return self.fail(ctx, e, shell=spec.shell)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Cannot write {target}: {e}",
                error_kind="completion",
            )

        digest = hashlib.sha256(data).hexdigest()
        logger.info("Harvested %s completion (%d bytes) into %s", spec.shell, len(data), target)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=str(target),
            metadata={
                "shell": spec.shell,
                "size": len(data),
                "sha256": digest,
                "exports": {f"completion_{spec.shell}": str(target)},
            },
        )

    def _assert(self, ctx: ExecutionContext) -> Receipt:
        assertion = SmokeAssertion.model_validate(ctx.params["assertion"])
        try:
            output = check_assertion(
                Path(ctx.params["binary"]),
                assertion,
                ctx.params["version"],
                Path(ctx.workdir),
                timeout=ctx.params.get("timeout", 120),
            )
        except RecipeError as e:
            return self.fail(ctx, e, args=assertion.args)

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=output,
            metadata={"args": assertion.args,
                      "expected": assertion.expected_for(ctx.params["version"])},
        )
