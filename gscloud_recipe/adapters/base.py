"""
Adapter contract.

Adapters are the only code that touches the network, the Go toolchain,
the filesystem or the built binary. Each one handles one kind of
Action and answers with a Receipt.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from gscloud_recipe.core.errors import RecipeError
from gscloud_recipe.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Action plus the run it belongs to.

    ``params`` already have run variables such as ``{version}`` filled in.
    """

    action: Action
    workdir: str = "."
    dry_run: bool = False
    params: dict[str, Any] = Field(default_factory=dict)

    def path(self, key: str) -> Path:
        """A path param, resolved against the working directory."""
        target = Path(self.params[key])
        if not target.is_absolute():
            target = Path(self.workdir) / target
        return target


class Adapter(ABC):
    """One kind of side effect behind a validate/execute pair.

    ``execute`` reports problems in the receipt instead of raising;
    services raise ``RecipeError`` and ``fail`` converts it.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key, e.g. ``source``, ``go``, ``binary``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tool can be used right now."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """``(True, "")`` when the params are usable, else ``(False, reason)``."""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Perform the action."""

    def failure_kind(self, context: ExecutionContext) -> str:
        """Error kind for failures the adapter does not classify itself."""
        return "recipe"

    def fail(self, context: ExecutionContext, error: RecipeError, **metadata: Any) -> Receipt:
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=str(error),
            error_kind=error.kind,
            metadata=metadata,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
