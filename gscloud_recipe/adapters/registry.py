"""
Adapter registry.

Maps adapter names to instances and runs actions through them. Every
path out of ``execute_action`` is a Receipt: missing adapters, failed
validation and exceptions raised by an adapter are all reported as
failed receipts.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from gscloud_recipe.adapters.base import Adapter, ExecutionContext
from gscloud_recipe.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Name → adapter lookup plus the single dispatch point for actions.

    In mock mode every action goes to the configured mock adapter; with
    no mock adapter set, actions succeed without running anything.
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    # ── Registration ─────────────────────────────────────────────

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %s", adapter.name)
        self._adapters[adapter.name] = adapter
        logger.debug("Adapter %s registered (%s)", adapter.name, type(adapter).__name__)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Per-adapter availability; a crashing probe counts as unavailable."""
        return {
            name: {
                "name": name,
                "available": _probe(adapter),
                "type": type(adapter).__name__,
            }
            for name, adapter in self._adapters.items()
        }

    # ── Dispatch ─────────────────────────────────────────────────

    def _resolve(self, action: Action) -> Adapter | None:
        if self._mock_mode:
            return self._mock_adapter
        return self._adapters.get(action.adapter)

    def execute_action(
        self,
        action: Action,
        workdir: str = ".",
        params: dict[str, Any] | None = None,
        dry_run: bool = False,
    ) -> Receipt:
        """Validate and run one action.

        Args:
            action: The step to run.
            workdir: Scratch directory of the run.
            params: Rendered params; ``action.params`` when omitted.
            dry_run: Validate only and return a skipped receipt.
        """
        started = time.monotonic()

        adapter = self._resolve(action)
        if adapter is None and self._mock_mode:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.id}",
                metadata={"mock": True, "dry_run": dry_run},
            )
        if adapter is None:
            return _failed(action, f"No adapter registered for '{action.adapter}'")

        context = ExecutionContext(
            action=action,
            workdir=workdir,
            dry_run=dry_run,
            params=dict(action.params) if params is None else params,
        )

        try:
            valid, reason = adapter.validate(context)
        except Exception as e:
            return _failed(action, f"Validation error: {e}", adapter.failure_kind(context))
        if not valid:
            return _failed(action, f"Validation failed: {reason}", adapter.failure_kind(context))

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] {action.name or action.id}",
                metadata={"dry_run": True},
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("%s raised on %s: %s", action.adapter, action.id, e)
            receipt = _failed(action, f"Unexpected error: {e}", adapter.failure_kind(context))

        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt


def _probe(adapter: Adapter) -> bool:
    try:
        return bool(adapter.is_available())
    except Exception:
        return False


def _failed(action: Action, error: str, error_kind: str = "recipe") -> Receipt:
    return Receipt.failure(
        adapter=action.adapter, action_id=action.id, error=error, error_kind=error_kind,
    )
