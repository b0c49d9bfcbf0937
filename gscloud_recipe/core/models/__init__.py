"""
Domain models — Pydantic types for recipes, steps and install state.

All models are re-exported here for convenient access:

    from gscloud_recipe.core.models import Recipe, Action, Receipt, InstallState
"""

from gscloud_recipe.core.models.action import Action, Receipt
from gscloud_recipe.core.models.recipe import (
    BuildConfig,
    CompletionSpec,
    HeadSpec,
    InstallLayout,
    Recipe,
    SmokeAssertion,
    version_from_url,
)
from gscloud_recipe.core.models.state import InstallState, InstalledArtifacts

__all__ = [
    "Action",
    "BuildConfig",
    "CompletionSpec",
    "HeadSpec",
    "InstallLayout",
    "InstallState",
    "InstalledArtifacts",
    "Receipt",
    "Recipe",
    "SmokeAssertion",
    "version_from_url",
]
