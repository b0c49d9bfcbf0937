"""
Tests for built-binary invocations — bootstrap, completions, smoke checks.
"""

from pathlib import Path

import sys

import pytest

from conftest import BASH_COMPLETION, ZSH_COMPLETION, write_fake_gscloud
from gscloud_recipe.core.errors import CompletionError, InstallError, SmokeTestFailure
from gscloud_recipe.core.models.recipe import CompletionSpec, SmokeAssertion
from gscloud_recipe.core.services.binary import (
    bootstrap_config,
    check_assertion,
    harvest_completion,
    install_files,
    sandbox_env,
    write_completion,
)


@pytest.fixture
def binary(tmp_path: Path) -> Path:
    return write_fake_gscloud(tmp_path / "bin" / "gscloud", version="0.12.0")


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    bootstrap_config(path, ["config.yaml"])
    return path


class TestBootstrap:
    def test_creates_empty_file(self, tmp_path: Path):
        [created] = bootstrap_config(tmp_path, ["config.yaml"])
        assert created == tmp_path / "config.yaml"
        assert created.read_bytes() == b""

    def test_keeps_existing_content(self, tmp_path: Path):
        (tmp_path / "config.yaml").write_text("projects: {}\n")
        bootstrap_config(tmp_path, ["config.yaml"])
        assert (tmp_path / "config.yaml").read_text() == "projects: {}\n"

    def test_nested(self, tmp_path: Path):
        bootstrap_config(tmp_path, [".config/gscloud/config.yaml"])
        assert (tmp_path / ".config" / "gscloud" / "config.yaml").is_file()

    def test_sandbox_env(self, tmp_path: Path):
        assert sandbox_env(tmp_path) == {"HOME": str(tmp_path)}


class TestHarvestCompletion:
    def test_byte_exact(self, binary, workdir):
        assert harvest_completion(binary, CompletionSpec(shell="zsh"), workdir) == ZSH_COMPLETION
        assert harvest_completion(binary, CompletionSpec(shell="bash"), workdir) == BASH_COMPLETION

    def test_needs_config(self, binary, tmp_path: Path):
        bare = tmp_path / "bare"
        bare.mkdir()
        with pytest.raises(CompletionError, match="config file not found"):
            harvest_completion(binary, CompletionSpec(shell="zsh"), bare)

    def test_unknown_subcommand(self, binary, workdir):
        spec = CompletionSpec(shell="zsh", args=["completions", "zsh"])
        with pytest.raises(CompletionError, match="zsh completion failed"):
            harvest_completion(binary, spec, workdir)

    def test_write_completion(self, tmp_path: Path):
        target = tmp_path / "share" / "zsh" / "site-functions" / "_gscloud"
        write_completion(ZSH_COMPLETION, target)
        assert target.read_bytes() == ZSH_COMPLETION
        assert not target.with_name("_gscloud.tmp").exists()


class TestCheckAssertion:
    def test_version(self, binary, workdir):
        assertion = SmokeAssertion(args=["version"], expect="Version:\t{version}")
        output = check_assertion(binary, assertion, "0.12.0", workdir)
        assert "Git commit:\t" in output

    def test_help(self, binary, workdir):
        assertion = SmokeAssertion(args=["help"], expect="gscloud lets you manage")
        check_assertion(binary, assertion, "0.12.0", workdir)

    def test_wrong_version(self, binary, workdir):
        assertion = SmokeAssertion(args=["version"], expect="Version:\t{version}")
        with pytest.raises(SmokeTestFailure, match="does not contain"):
            check_assertion(binary, assertion, "0.13.0", workdir)

    def test_non_zero_exit(self, binary, tmp_path: Path):
        bare = tmp_path / "bare"
        bare.mkdir()
        assertion = SmokeAssertion(args=["help"], expect="gscloud lets you manage")
        with pytest.raises(SmokeTestFailure, match="exit 1"):
            check_assertion(binary, assertion, "0.12.0", bare)

    def test_stderr_does_not_count(self, tmp_path: Path, workdir):
        noisy = tmp_path / "noisy"
        noisy.write_text(
            f"#!{sys.executable}\n"
            "import sys\n"
            "sys.stderr.write('Version:\\t0.12.0\\n')\n"
        )
        noisy.chmod(0o755)
        assertion = SmokeAssertion(args=["version"], expect="Version:\t{version}")
        with pytest.raises(SmokeTestFailure, match="stderr: Version:\t0.12.0"):
            check_assertion(noisy, assertion, "0.12.0", workdir)


class TestInstallFiles:
    def test_copies_with_mode(self, tmp_path: Path):
        staged = tmp_path / "work" / "gscloud"
        staged.parent.mkdir()
        staged.write_bytes(b"binary")
        dest = tmp_path / "prefix" / "bin" / "gscloud"

        assert install_files([(staged, dest, 0o755)]) == [dest]
        assert dest.read_bytes() == b"binary"
        assert dest.stat().st_mode & 0o777 == 0o755
        assert staged.is_file()
        assert not dest.with_name("gscloud.tmp").exists()

    def test_replaces_existing(self, tmp_path: Path):
        staged = tmp_path / "_gscloud"
        staged.write_bytes(ZSH_COMPLETION)
        dest = tmp_path / "site-functions" / "_gscloud"
        dest.parent.mkdir()
        dest.write_bytes(b"old")
        install_files([(staged, dest, 0o644)])
        assert dest.read_bytes() == ZSH_COMPLETION

    def test_missing_source_leaves_destinations(self, tmp_path: Path):
        good = tmp_path / "good"
        good.write_bytes(b"new")
        first = tmp_path / "prefix" / "first"
        first.parent.mkdir()
        first.write_bytes(b"old")

        with pytest.raises(InstallError):
            install_files([(good, first, 0o644), (tmp_path / "missing", tmp_path / "prefix" / "second", 0o644)])
        assert first.read_bytes() == b"old"
        assert sorted(p.name for p in first.parent.iterdir()) == ["first"]
