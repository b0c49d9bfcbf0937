"""
Recipe model — the release descriptor and its build configuration.

Loaded from a recipe YAML file (or the built-in table), this is the
declarative description of what to fetch, how to build it, and how to
check the result. Nothing here runs anything.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Version embedded in archive names: v0.12.0.tar.gz, gscloud-1.2.3-beta.tgz
_VERSION_IN_URL = re.compile(
    r"v?(\d+(?:\.\d+)+(?:-[0-9A-Za-z.]+)?)\.(?:tar\.gz|tgz|tar\.xz|tar\.bz2|zip)$"
)

_SHA256 = re.compile(r"^[0-9a-f]{64}$")

Shell = Literal["zsh", "bash"]


def version_from_url(url: str) -> str | None:
    """Derive a release version from an archive URL, or None."""
    basename = url.rstrip("/").rsplit("/", 1)[-1]
    match = _VERSION_IN_URL.search(basename)
    return match.group(1) if match else None


class HeadSpec(BaseModel):
    """Git repository used for builds of the development head."""

    url: str
    branch: str = "master"


class BuildConfig(BaseModel):
    """How the source is compiled.

    ``ldflags`` are fixed here; ``{version}`` is the only placeholder
    substituted at install time.
    """

    toolchain: str = "go"
    package: str = "."
    ldflags: list[str] = Field(default_factory=list)
    trimpath: bool = True

    def render_ldflags(self, version: str) -> list[str]:
        """Linker flags with the release version substituted."""
        return [flag.replace("{version}", version) for flag in self.ldflags]


class CompletionSpec(BaseModel):
    """A completion script harvested from the built binary."""

    shell: Shell
    args: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _default_args(self) -> CompletionSpec:
        if not self.args:
            self.args = ["completion", self.shell]
        return self


class SmokeAssertion(BaseModel):
    """Run the binary with ``args`` and expect ``expect`` in its output."""

    args: list[str]
    expect: str

    def expected_for(self, version: str) -> str:
        return self.expect.replace("{version}", version)


def _default_completions() -> list[CompletionSpec]:
    return [CompletionSpec(shell="zsh"), CompletionSpec(shell="bash")]


class Recipe(BaseModel):
    """Release descriptor — what to fetch and how to install it.

    ``version`` may be omitted; it is then derived from the archive
    name in ``url`` (``.../v0.12.0.tar.gz`` gives ``0.12.0``).
    """

    name: str
    desc: str = ""
    homepage: str = ""
    url: str
    sha256: str
    version: str = ""
    license: str = ""
    head: HeadSpec | None = None

    build: BuildConfig = Field(default_factory=BuildConfig)

    # The wrapped binary refuses to start without a config file, even
    # for ``version`` and ``help``.
    bootstrap_config: list[str] = Field(default_factory=lambda: ["config.yaml"])

    completions: list[CompletionSpec] = Field(default_factory=_default_completions)
    smoke_test: list[SmokeAssertion] = Field(default_factory=list)

    @field_validator("sha256")
    @classmethod
    def _check_sha256(cls, value: str) -> str:
        value = value.strip().lower()
        if not _SHA256.match(value):
            raise ValueError("sha256 must be 64 hexadecimal characters")
        return value

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value or "/" in value or value.startswith("."):
            raise ValueError(f"invalid recipe name: {value!r}")
        return value

    @model_validator(mode="after")
    def _derive_version(self) -> Recipe:
        if not self.version:
            derived = version_from_url(self.url)
            if derived is None:
                raise ValueError(
                    f"version not given and cannot be derived from url {self.url}"
                )
            self.version = derived
        return self

    def with_overrides(
        self,
        *,
        version: str | None = None,
        url: str | None = None,
        sha256: str | None = None,
    ) -> Recipe:
        """Return a copy with release fields replaced.

        A new ``url`` without a new ``version`` re-derives the version.
        """
        data: dict[str, Any] = self.model_dump()
        if url:
            data["url"] = url
            data["version"] = ""
        if version:
            data["version"] = version
        if sha256:
            data["sha256"] = sha256
        return Recipe.model_validate(data)

    def completion(self, shell: str) -> CompletionSpec | None:
        """Look up a completion spec by shell name."""
        for spec in self.completions:
            if spec.shell == shell:
                return spec
        return None


class InstallLayout(BaseModel):
    """Where installed files land under a prefix."""

    prefix: Path

    @property
    def bin_dir(self) -> Path:
        return self.prefix / "bin"

    @property
    def zsh_completion_dir(self) -> Path:
        return self.prefix / "share" / "zsh" / "site-functions"

    @property
    def bash_completion_dir(self) -> Path:
        return self.prefix / "etc" / "bash_completion.d"

    def binary(self, name: str) -> Path:
        return self.bin_dir / name

    def completion_path(self, shell: str, name: str) -> Path:
        """Installed path of the completion script for ``shell``."""
        if shell == "zsh":
            return self.zsh_completion_dir / f"_{name}"
        if shell == "bash":
            return self.bash_completion_dir / name
        raise ValueError(f"Unsupported shell: {shell}")
