"""
Subprocess runner — the single place ``subprocess.run`` is called.

Every external command of a recipe run (``go build``, ``git clone``,
the built binary itself) goes through ``run_command``. Stdout is kept
as raw bytes and never truncated: completion scripts are written
exactly as the binary printed them.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Bytes of stderr kept in results (stderr is for humans)
_STDERR_TAIL = 4000


def run_command(
    cmd: list[str],
    *,
    cwd: str | Path | None = None,
    timeout: int = 120,
    env_overrides: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Run a command and capture its output.

    Args:
        cmd: Argument list; never passed through a shell.
        cwd: Working directory for the command.
        timeout: Seconds before the command is killed.
        env_overrides: Variables set on top of the current environment.

    Returns:
        ``{"ok": True, "returncode": 0, "stdout": b"...", "stderr": "...",
        "elapsed_ms": N}`` on success. On failure ``ok`` is False and
        ``error`` describes what happened.
    """
    env = os.environ.copy()
    if env_overrides:
        env.update(env_overrides)

    logger.debug("Running %s (cwd=%s)", cmd, cwd)
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            timeout=timeout,
            env=env,
            cwd=str(cwd) if cwd is not None else None,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return {"ok": False, "returncode": None, "stdout": b"", "stderr": "",
                "error": f"Command timed out ({timeout}s): {' '.join(cmd)}"}
    except OSError as e:
        # Missing executable, permission denied, bad cwd
        return {"ok": False, "returncode": None, "stdout": b"", "stderr": "",
                "error": f"Cannot run {cmd[0]}: {e}"}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stderr = result.stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL:]

    if result.returncode == 0:
        logger.debug("%s finished in %dms", cmd[0], elapsed_ms)
        return {
            "ok": True,
            "returncode": 0,
            "stdout": result.stdout,
            "stderr": stderr,
            "elapsed_ms": elapsed_ms,
        }

    logger.debug("%s exited %d: %s", cmd[0], result.returncode, stderr.strip())
    return {
        "ok": False,
        "returncode": result.returncode,
        "stdout": result.stdout,
        "stderr": stderr,
        "elapsed_ms": elapsed_ms,
        "error": f"Command failed (exit {result.returncode}): {' '.join(cmd)}",
    }


def output_text(result: dict[str, Any]) -> str:
    """Decoded stdout of a ``run_command`` result."""
    return result.get("stdout", b"").decode("utf-8", errors="replace")
