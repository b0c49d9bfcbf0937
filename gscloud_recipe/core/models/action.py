"""
Steps and their receipts.

The engine hands each adapter an ``Action`` (one step of a recipe run)
and gets a ``Receipt`` back. Adapters report failures in the receipt,
tagged with an error kind, instead of raising.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

StepStatus = Literal["ok", "skipped", "failed"]


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """One step of a run: which adapter, which phase, with what params."""

    id: str                         # <operation_id>:<index>:<phase>
    adapter: str
    name: str = ""
    phase: str = ""                 # fetch, build, bootstrap, completions, install, test
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """What happened when an adapter ran an action.

    Failed receipts carry ``metadata["error_kind"]`` (``integrity``,
    ``build``, ``completion``, ``assertion``, ...). Successful ones may
    carry ``metadata["exports"]``, run variables for later steps.
    """

    adapter: str
    action_id: str
    status: StepStatus = "ok"
    output: str = ""
    error: str | None = None
    started_at: str = Field(default_factory=_timestamp)
    ended_at: str = Field(default_factory=_timestamp)
    duration_ms: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def error_kind(self) -> str | None:
        return self.metadata.get("error_kind", "recipe") if self.failed else None

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **fields: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, output=output, **fields)

    @classmethod
    def skip(cls, adapter: str, action_id: str, reason: str = "", **fields: Any) -> Receipt:
        """A step that was validated but deliberately not run."""
        return cls(adapter=adapter, action_id=action_id, status="skipped", output=reason, **fields)

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        error_kind: str = "recipe",
        **fields: Any,
    ) -> Receipt:
        """A failed step; ``error_kind`` is merged into ``metadata``."""
        metadata = {"error_kind": error_kind, **(fields.pop("metadata", None) or {})}
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            metadata=metadata,
            **fields,
        )
