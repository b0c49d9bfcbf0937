"""
Source adapter — Fetch+Verify as an engine step.

Action params:
    mode (str): ``tarball`` (default) or ``head``.
    recipe (dict): The recipe, as dumped by ``Recipe.model_dump``.
    downloads_dir (str): Download cache directory.
    dest (str): Directory the source tree is unpacked or cloned into.
    extract (bool): Unpack after verifying (default: True).
    timeout (int): Network timeout in seconds.

Exports ``source_dir`` and, for tarballs, ``archive``. Head builds also
export ``version`` (``HEAD-<sha>``), which later steps pick up.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from gscloud_recipe.adapters.base import Adapter, ExecutionContext
from gscloud_recipe.core.errors import FetchError, RecipeError
from gscloud_recipe.core.models.action import Receipt
from gscloud_recipe.core.models.recipe import Recipe
from gscloud_recipe.core.services.source import clone_head, extract_archive, fetch_archive

logger = logging.getLogger(__name__)

_MODES = {"tarball", "head"}


class SourceAdapter(Adapter):
    """Download and verify a release archive, or clone the head branch."""

    @property
    def name(self) -> str:
        return "source"

    def is_available(self) -> bool:
        return True  # urllib is always there; git is checked per head build

    def failure_kind(self, context: ExecutionContext) -> str:
        return "fetch"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.params
        mode = params.get("mode", "tarball")
        if mode not in _MODES:
            return False, f"Unknown mode '{mode}'. Valid: {', '.join(sorted(_MODES))}"
        for key in ("recipe", "dest"):
            if key not in params:
                return False, f"Missing required param: '{key}'"
        if mode == "tarball" and "downloads_dir" not in params:
            return False, "Missing required param: 'downloads_dir'"
        if mode == "head" and not params["recipe"].get("head"):
            return False, "Recipe has no head repository"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        recipe = Recipe.model_validate(params["recipe"])
        dest = context.path("dest")
        timeout = params.get("timeout", 120)

        try:
            if params.get("mode", "tarball") == "head":
                if recipe.head is None:
                    raise FetchError(f"Recipe '{recipe.name}' has no head repository")
                if dest.exists():
                    shutil.rmtree(dest)
                version = clone_head(recipe.head, dest, timeout=timeout)
                return Receipt.success(
                    adapter=self.name,
                    action_id=context.action.id,
                    output=f"Cloned {recipe.head.url} ({recipe.head.branch}) at {version}",
                    metadata={"exports": {"source_dir": str(dest), "version": version}},
                )

            archive = fetch_archive(recipe, Path(params["downloads_dir"]), timeout=timeout)
            exports = {"archive": str(archive)}
            if params.get("extract", True):
                if dest.exists():
                    shutil.rmtree(dest)
                extract_archive(archive, dest)
                exports["source_dir"] = str(dest)
        except RecipeError as e:
            logger.error("%s", e)
            return self.fail(context, e, url=recipe.url)

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Verified {archive.name} (sha256 {recipe.sha256[:12]}…)",
            metadata={"exports": exports, "sha256": recipe.sha256},
        )
