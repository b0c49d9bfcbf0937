"""
Shared test fixtures and configuration.

End-to-end runs never touch the network or a real Go toolchain: a fake
``go`` on PATH "builds" a fake ``gscloud`` (both small Python scripts),
and release archives are served from ``file://`` URLs.
"""

import hashlib
import json
import os
import stat
import sys
import tarfile
from pathlib import Path

import pytest

ZSH_COMPLETION = (
    b"#compdef gscloud\n"
    b"\n"
    b"_gscloud() {\n"
    b"\t_arguments '1: :(completion help version)'\n"
    b"}\n"
    b"compdef _gscloud gscloud"
)

BASH_COMPLETION = (
    b"# bash completion for gscloud   -*- shell-script -*-\n"
    b"__start_gscloud() {\n"
    b"    COMPREPLY=( $(compgen -W \"completion help version\" -- \"${COMP_WORDS[1]}\") )\n"
    b"}\n"
    b"complete -o default -F __start_gscloud gscloud\n"
)

# The fake gscloud refuses to start without config.yaml, like the real one.
_GSCLOUD_TEMPLATE = """\
#!@PYTHON@
import os
import sys

VERSION = "@VERSION@"
COMPLETIONS = {"zsh": @ZSH@, "bash": @BASH@}

if not os.path.exists("config.yaml"):
    sys.stderr.write("Error: config file not found\\n")
    sys.exit(1)

args = sys.argv[1:]
if args == ["version"]:
    sys.stdout.write("Version:\\t%s\\nGit commit:\\tdeadbeef\\n" % VERSION)
elif args == ["help"]:
    sys.stdout.write("gscloud lets you manage objects on gridscale.io via command line.\\n")
elif len(args) == 2 and args[0] == "completion" and args[1] in COMPLETIONS:
    sys.stdout.buffer.write(COMPLETIONS[args[1]])
else:
    sys.stderr.write("unknown command\\n")
    sys.exit(1)
"""

# Fake `go build`: logs its argv, checks it runs inside the unpacked
# source tree, and writes a fake gscloud carrying the linked version.
_GO_TEMPLATE = """\
#!@PYTHON@
import json
import os
import re
import sys

here = os.path.dirname(os.path.abspath(__file__))
args = sys.argv[1:]
with open(os.path.join(here, "go.log"), "a") as log:
    log.write(json.dumps({"args": args, "cwd": os.getcwd()}) + "\\n")

if os.environ.get("FAKE_GO_FAIL"):
    sys.stderr.write("./main.go:3:1: syntax error: unexpected }\\n")
    sys.exit(2)
if not os.path.exists("go.mod"):
    sys.stderr.write("go: go.mod file not found\\n")
    sys.exit(1)

output = next(a[len("-o="):] for a in args if a.startswith("-o="))
ldflags = next((a[len("-ldflags="):] for a in args if a.startswith("-ldflags=")), "")
match = re.search(r"cmd\\.Version=(\\S+)", ldflags)
version = match.group(1) if match else "dev"

with open(os.path.join(here, "gscloud.tmpl")) as f:
    program = f.read().replace("@VERSION@", version)
with open(output, "w") as f:
    f.write(program)
os.chmod(output, 0o755)
"""


def _make_executable(path: Path) -> None:
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def gscloud_program(version: str = "@VERSION@") -> str:
    """Source of the fake gscloud binary."""
    return (
        _GSCLOUD_TEMPLATE
        .replace("@PYTHON@", sys.executable)
        .replace("@ZSH@", repr(ZSH_COMPLETION))
        .replace("@BASH@", repr(BASH_COMPLETION))
        .replace("@VERSION@", version)
    )


def write_fake_gscloud(path: Path, version: str = "0.12.0") -> Path:
    """Write an executable fake gscloud reporting ``version``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(gscloud_program(version))
    _make_executable(path)
    return path


def go_invocations(toolchain_dir: Path) -> list[dict]:
    """Recorded calls of the fake go, oldest first."""
    log = toolchain_dir / "go.log"
    if not log.is_file():
        return []
    return [json.loads(line) for line in log.read_text().splitlines() if line]


def make_release(root: Path, version: str = "0.12.0") -> dict:
    """Build a GitHub-style tag archive ``v<version>.tar.gz``.

    Returns ``url`` (file://), ``sha256``, ``archive`` and ``version``.
    """
    src = root / "upstream" / f"gscloud-{version}"
    (src / "cmd").mkdir(parents=True, exist_ok=True)
    (src / "go.mod").write_text("module github.com/gridscale/gscloud\n\ngo 1.21\n")
    (src / "main.go").write_text("package main\n\nfunc main() {}\n")
    (src / "cmd" / "version.go").write_text("package cmd\n\nvar Version string\n")

    releases = root / "releases"
    releases.mkdir(parents=True, exist_ok=True)
    archive = releases / f"v{version}.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(src, arcname=src.name)

    return {
        "url": archive.as_uri(),
        "sha256": hashlib.sha256(archive.read_bytes()).hexdigest(),
        "archive": archive,
        "version": version,
    }


@pytest.fixture
def toolchain(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Put the fake ``go`` first on PATH. Returns its directory."""
    bin_dir = tmp_path / "toolchain"
    bin_dir.mkdir()
    go = bin_dir / "go"
    go.write_text(_GO_TEMPLATE.replace("@PYTHON@", sys.executable))
    _make_executable(go)
    (bin_dir / "gscloud.tmpl").write_text(gscloud_program())
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.delenv("FAKE_GO_FAIL", raising=False)
    return bin_dir


@pytest.fixture
def release(tmp_path: Path) -> dict:
    """A 0.12.0 release archive served from a file:// URL."""
    return make_release(tmp_path)


@pytest.fixture
def gsr_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict[str, Path]:
    """Point prefix and cache at tmp_path and run from an empty directory."""
    prefix = tmp_path / "prefix"
    cache = tmp_path / "cache"
    cwd = tmp_path / "cwd"
    cwd.mkdir()
    monkeypatch.setenv("GSR_PREFIX", str(prefix))
    monkeypatch.setenv("GSR_CACHE_DIR", str(cache))
    for name in ("GSR_COMMAND_TIMEOUT", "GSR_BUILD_TIMEOUT", "GSR_LOG_LEVEL",
                 "GSR_LOG_FILE", "GSR_LOG_FILE_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(cwd)
    return {"prefix": prefix, "cache": cache, "cwd": cwd}
