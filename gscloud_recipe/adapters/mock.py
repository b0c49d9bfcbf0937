"""
Scriptable stand-in adapter for engine tests.
"""

from __future__ import annotations

from typing import Any

from gscloud_recipe.adapters.base import Adapter, ExecutionContext
from gscloud_recipe.core.models.action import Receipt


class MockAdapter(Adapter):
    """Succeeds on every action unless told otherwise.

    Per action ID it can return a canned receipt (``set_response``),
    fail with an error kind (``set_failure``) or export run variables
    (``set_exports``). Every context it sees lands in ``call_log``.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._canned: dict[str, Receipt] = {}
        self._exports: dict[str, dict[str, Any]] = {}
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    @property
    def executed_ids(self) -> list[str]:
        return [ctx.action.id for ctx in self.call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._canned[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure", error_kind: str = "recipe") -> None:
        self.set_response(
            action_id,
            Receipt.failure(adapter=self._name, action_id=action_id, error=error, error_kind=error_kind),
        )

    def set_exports(self, action_id: str, **exports: Any) -> None:
        self._exports[action_id] = exports

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        action_id = context.action.id
        if action_id in self._canned:
            return self._canned[action_id]

        metadata: dict[str, Any] = {"mock": True}
        if action_id in self._exports:
            metadata["exports"] = dict(self._exports[action_id])
        return Receipt.success(self._name, action_id, self._default_output, metadata=metadata)

    def reset(self) -> None:
        self.call_log.clear()
        self._canned.clear()
        self._exports.clear()
