"""
Source acquisition — download, checksum verification, extraction, clone.

Fetch+Verify is the first step of every install: the archive is
downloaded (or taken from the download cache), its SHA-256 compared
with the recipe, and only then unpacked. A mismatch raises
``IntegrityError`` before anything is built.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import tarfile
import urllib.error
import urllib.request
from pathlib import Path

from gscloud_recipe import __version__
from gscloud_recipe.core.errors import FetchError, IntegrityError
from gscloud_recipe.core.models.recipe import HeadSpec, Recipe
from gscloud_recipe.core.services.subprocess_runner import output_text, run_command

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024
_ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tar")


def sha256_file(path: Path) -> str:
    """Hex SHA-256 digest of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_checksum(path: Path, expected: str) -> None:
    """Raise ``IntegrityError`` unless ``path`` hashes to ``expected``."""
    actual = sha256_file(path)
    if actual != expected.lower():
        raise IntegrityError.mismatch(str(path), expected.lower(), actual)
    logger.debug("Checksum OK for %s", path.name)


def archive_suffix(url: str) -> str:
    """File suffix of an archive URL (``.tar.gz`` for ``...v1.0.tar.gz``)."""
    basename = url.rstrip("/").rsplit("/", 1)[-1].split("?", 1)[0]
    for suffix in _ARCHIVE_SUFFIXES:
        if basename.endswith(suffix):
            return suffix
    return ""


def cached_archive_path(recipe: Recipe, downloads_dir: Path) -> Path:
    """Where the archive of this release is kept in the download cache."""
    suffix = archive_suffix(recipe.url) or ".tar.gz"
    return downloads_dir / f"{recipe.name}--{recipe.version}{suffix}"


def download(url: str, dest: Path, *, timeout: int = 120) -> Path:
    """Download ``url`` to ``dest`` through a ``.part`` file.

    Raises:
        FetchError: On any network or filesystem error.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")

    logger.info("Downloading %s", url)
    req = urllib.request.Request(
        url, headers={"User-Agent": f"gscloud-recipe/{__version__}"},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(partial, "wb") as out:
            shutil.copyfileobj(resp, out, _CHUNK)
    except (urllib.error.URLError, OSError, ValueError) as e:
        partial.unlink(missing_ok=True)
        raise FetchError(f"Download failed for {url}: {e}") from e

    partial.replace(dest)
    return dest


def fetch_archive(recipe: Recipe, downloads_dir: Path, *, timeout: int = 120) -> Path:
    """Return a verified archive for ``recipe``, downloading if needed.

    A cached archive is reused only when its checksum matches. A freshly
    downloaded archive that fails verification is deleted so it cannot
    be picked up by a later run.

    Raises:
        FetchError: Download failed.
        IntegrityError: Downloaded bytes do not match ``recipe.sha256``.
    """
    archive = cached_archive_path(recipe, downloads_dir)

    if archive.is_file():
        if sha256_file(archive) == recipe.sha256:
            logger.info("Using cached %s", archive)
            return archive
        logger.warning("Cached %s has a stale checksum, downloading again", archive.name)
        archive.unlink()

    download(recipe.url, archive, timeout=timeout)
    try:
        verify_checksum(archive, recipe.sha256)
    except IntegrityError:
        archive.unlink(missing_ok=True)
        raise
    return archive


def _strip_top(name: str) -> str:
    parts = name.split("/", 1)
    return parts[1] if len(parts) == 2 else ""


def _strip_first_component(member: tarfile.TarInfo, dest_path: str) -> tarfile.TarInfo | None:
    """Extraction filter: drop the archive's top directory, then apply ``data``."""
    name = _strip_top(member.name)
    if not name:
        return None
    linkname = _strip_top(member.linkname) if member.islnk() else member.linkname
    return tarfile.data_filter(member.replace(name=name, linkname=linkname), dest_path)


def extract_archive(archive: Path, dest: Path) -> Path:
    """Unpack a source tarball into ``dest``, stripping its top directory.

    GitHub tag archives wrap everything in ``<repo>-<version>/``; the
    build runs from the unwrapped tree.

    Raises:
        FetchError: Not a readable tarball.
    """
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:*") as tar:
            tar.extractall(dest, filter=_strip_first_component)
    except (tarfile.TarError, OSError) as e:
        raise FetchError(f"Cannot extract {archive.name}: {e}") from e

    logger.debug("Extracted %s to %s", archive.name, dest)
    return dest


def clone_head(head: HeadSpec, dest: Path, *, timeout: int = 1800) -> str:
    """Shallow-clone the head branch into ``dest``.

    Returns:
        The version string of the checkout: ``HEAD-<short sha>``, or
        ``HEAD`` when the commit cannot be read.

    Raises:
        FetchError: git is missing or the clone failed.
    """
    if shutil.which("git") is None:
        raise FetchError("git is required for head builds but was not found on PATH")

    dest.parent.mkdir(parents=True, exist_ok=True)
    result = run_command(
        ["git", "clone", "--depth", "1", "--branch", head.branch, head.url, str(dest)],
        timeout=timeout,
    )
    if not result["ok"]:
        raise FetchError(f"{result['error']}\n{result.get('stderr', '').strip()}".strip())

    rev = run_command(["git", "rev-parse", "--short", "HEAD"], cwd=dest, timeout=30)
    sha = output_text(rev).strip() if rev["ok"] else ""
    return f"HEAD-{sha}" if sha else "HEAD"
