"""
Install state — what has been installed, from which release.

Stored in ``installed.json`` under the cache directory. This is a
record of past installs, not configuration: losing it only means
``test`` and ``completions`` need an explicit ``--prefix``.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class InstalledArtifacts(BaseModel):
    """Files produced by one install of a recipe."""

    name: str
    version: str
    source: str = "tarball"          # tarball | head
    prefix: str
    binary: str
    binary_sha256: str = ""
    completions: dict[str, str] = Field(default_factory=dict)         # shell → path
    completion_sha256: dict[str, str] = Field(default_factory=dict)   # shell → digest
    installed_at: str = Field(default_factory=_now_iso)


class InstallState(BaseModel):
    """All install records, keyed by recipe name."""

    version: int = 1
    updated_at: str = Field(default_factory=_now_iso)
    installs: dict[str, InstalledArtifacts] = Field(default_factory=dict)

    def record(self, artifacts: InstalledArtifacts) -> None:
        """Store (or replace) the record for a recipe."""
        self.installs[artifacts.name] = artifacts
        self.touch()

    def get(self, name: str) -> InstalledArtifacts | None:
        return self.installs.get(name)

    def touch(self) -> None:
        """Update the timestamp."""
        self.updated_at = _now_iso()
