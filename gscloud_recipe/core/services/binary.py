"""
Built-binary invocations and the final install of staged files.

The binary always runs from a scratch working directory with ``HOME``
pointed at it, so it sees the bootstrapped ``config.yaml`` and never
the user's real configuration.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from gscloud_recipe.core.errors import CompletionError, InstallError, SmokeTestFailure
from gscloud_recipe.core.models.recipe import CompletionSpec, SmokeAssertion
from gscloud_recipe.core.services.subprocess_runner import output_text, run_command

logger = logging.getLogger(__name__)


def sandbox_env(workdir: Path) -> dict[str, str]:
    """Environment overrides for running the built binary."""
    return {"HOME": str(workdir)}


def bootstrap_config(workdir: Path, files: list[str]) -> list[Path]:
    """Create each file empty under ``workdir`` (like ``touch``).

    Existing files keep their content.
    """
    created: list[Path] = []
    for rel in files:
        target = workdir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.touch(exist_ok=True)
        created.append(target)
    logger.debug("Bootstrapped config files: %s", [str(p) for p in created])
    return created


def harvest_completion(
    binary: Path,
    spec: CompletionSpec,
    workdir: Path,
    *,
    timeout: int = 120,
) -> bytes:
    """Run the binary's completion command and return stdout verbatim.

    Raises:
        CompletionError: The binary could not run or exited non-zero.
    """
    result = run_command(
        [str(binary), *spec.args],
        cwd=workdir,
        timeout=timeout,
        env_overrides=sandbox_env(workdir),
    )
    if not result["ok"]:
        stderr = result.get("stderr", "").strip()
        raise CompletionError(
            f"{spec.shell} completion failed: {result['error']}\n{stderr}".strip()
        )
    return result["stdout"]


def write_completion(data: bytes, path: Path) -> Path:
    """Write a harvested completion script unchanged."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)
    return path


def check_assertion(
    binary: Path,
    assertion: SmokeAssertion,
    version: str,
    workdir: Path,
    *,
    timeout: int = 120,
) -> str:
    """Run the binary with the assertion's args and check its output.

    Only stdout is matched; stderr is kept for the failure message.
    The command must also exit zero.

    Returns:
        The captured output.

    Raises:
        SmokeTestFailure: The command could not run, exited non-zero,
            or the expected text is missing from its output.
    """
    expected = assertion.expected_for(version)
    result = run_command(
        [str(binary), *assertion.args],
        cwd=workdir,
        timeout=timeout,
        env_overrides=sandbox_env(workdir),
    )
    output = output_text(result)
    stderr = result.get("stderr", "").strip()

    if not result["ok"]:
        raise SmokeTestFailure(f"{result['error']}\n{stderr}".strip())
    if expected not in output:
        message = (
            f"`{binary.name} {' '.join(assertion.args)}` output does not contain "
            f"{expected!r}"
        )
        if stderr:
            message += f" (stderr: {stderr})"
        raise SmokeTestFailure(message)
    return output


def install_files(files: list[tuple[Path, Path, int]]) -> list[Path]:
    """Copy staged ``(source, destination, mode)`` files into place.

    Every source is copied next to its destination first; the renames
    start only once all copies exist, so a failed copy leaves every
    destination untouched.

    Raises:
        InstallError: A copy or rename failed.
    """
    pending: list[tuple[Path, Path]] = []
    try:
        for src, dest, mode in files:
            dest.parent.mkdir(parents=True, exist_ok=True)
            tmp = dest.with_name(dest.name + ".tmp")
            pending.append((tmp, dest))
            shutil.copyfile(src, tmp)
            tmp.chmod(mode)
    except OSError as e:
        for tmp, _ in pending:
            tmp.unlink(missing_ok=True)
        raise InstallError(f"Cannot stage {src} for {dest}: {e}") from e

    installed: list[Path] = []
    for tmp, dest in pending:
        try:
            os.replace(tmp, dest)
        except OSError as e:
            raise InstallError(f"Cannot install {dest}: {e}") from e
        installed.append(dest)
        logger.debug("Installed %s", dest)
    return installed
