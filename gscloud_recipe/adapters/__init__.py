"""Adapters — the engine's bindings to the outside world.

Public re-exports for convenient access.
"""

from gscloud_recipe.adapters.base import Adapter, ExecutionContext
from gscloud_recipe.adapters.mock import MockAdapter
from gscloud_recipe.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
