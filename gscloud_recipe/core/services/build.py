"""
Build — toolchain check and the ``go build`` invocation.

The recipe fixes the linker flags; the only value computed at install
time is the version substituted into them.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

from gscloud_recipe.core.errors import BuildError
from gscloud_recipe.core.models.recipe import BuildConfig
from gscloud_recipe.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)

SUPPORTED_TOOLCHAINS = {"go"}


def validate_toolchain(requires_toolchain: list[str]) -> dict[str, Any]:
    """Check that required build tools are on PATH.

    Returns:
        ``{"ok": True, "available": [...]}`` if all tools are present,
        ``{"ok": False, "missing": [...], "available": [...]}`` otherwise.
    """
    available = [tool for tool in requires_toolchain if shutil.which(tool)]
    missing = [tool for tool in requires_toolchain if tool not in available]
    if missing:
        return {"ok": False, "missing": missing, "available": available}
    return {"ok": True, "available": available}


def go_build_command(build: BuildConfig, output: Path, version: str) -> list[str]:
    """Argument list for ``go build``.

    Example::

        go build -trimpath -o=/opt/bin/gscloud \\
            "-ldflags=-s -w -X github.com/gridscale/gscloud/cmd.Version=0.12.0" .
    """
    cmd = [build.toolchain, "build"]
    if build.trimpath:
        cmd.append("-trimpath")
    cmd.append(f"-o={output}")
    ldflags = build.render_ldflags(version)
    if ldflags:
        cmd.append(f"-ldflags={' '.join(ldflags)}")
    cmd.append(build.package)
    return cmd


def run_build(
    build: BuildConfig,
    source_dir: Path,
    output: Path,
    version: str,
    *,
    timeout: int = 1800,
) -> dict[str, Any]:
    """Compile the source tree into ``output``.

    Raises:
        BuildError: Unsupported or missing toolchain, missing source,
            or a non-zero exit of the build command.
    """
    if build.toolchain not in SUPPORTED_TOOLCHAINS:
        raise BuildError(f"Unsupported toolchain: {build.toolchain}")

    toolchain = validate_toolchain([build.toolchain])
    if not toolchain["ok"]:
        raise BuildError(
            f"Build toolchain not found on PATH: {', '.join(toolchain['missing'])}"
        )

    if not source_dir.is_dir():
        raise BuildError(f"Source directory does not exist: {source_dir}")

    output.parent.mkdir(parents=True, exist_ok=True)
    cmd = go_build_command(build, output, version)
    logger.info("Building %s %s", output.name, version)

    result = run_command(cmd, cwd=source_dir, timeout=timeout)
    if not result["ok"]:
        stderr = result.get("stderr", "").strip()
        raise BuildError(f"{result['error']}\n{stderr}".strip())

    if not output.is_file():
        raise BuildError(f"Build succeeded but produced no binary at {output}")

    return {"ok": True, "binary": str(output), "command": cmd,
            "elapsed_ms": result.get("elapsed_ms", 0)}
