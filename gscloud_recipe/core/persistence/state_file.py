"""
Install state persistence — atomic read/write of ``installed.json``.

Writes go to a temp file in the same directory and are renamed into
place, so a crash mid-write never leaves a truncated state file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from gscloud_recipe.core.models.state import InstallState

logger = logging.getLogger(__name__)


def load_state(path: Path) -> InstallState:
    """Load install state; a missing or corrupt file gives a fresh state."""
    if not path.is_file():
        logger.debug("No state file at %s, starting fresh", path)
        return InstallState()

    try:
        return InstallState.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError, OSError) as e:
        logger.warning("Cannot load state from %s: %s (starting fresh)", path, e)
        return InstallState()


def save_state(state: InstallState, path: Path) -> None:
    """Save install state atomically.

    Raises:
        OSError: The state directory is not writable.
    """
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".installed_", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("State saved to %s", path)
