"""
End-to-end tests for the use cases — install, test, fetch, completions, info.

Archives come from file:// URLs and the build uses the fake go from
conftest, so these run offline and without a Go toolchain.
"""

import hashlib
import shutil
import subprocess
import textwrap
from pathlib import Path

import pytest

from conftest import BASH_COMPLETION, ZSH_COMPLETION, go_invocations, make_release, write_fake_gscloud
from gscloud_recipe.core.persistence.audit import AuditWriter
from gscloud_recipe.core.persistence.state_file import load_state
from gscloud_recipe.core.use_cases.completions import run_completions
from gscloud_recipe.core.use_cases.fetch import run_fetch
from gscloud_recipe.core.use_cases.info import get_info
from gscloud_recipe.core.use_cases.install import run_install
from gscloud_recipe.core.use_cases.recipe_check import check_recipe
from gscloud_recipe.core.use_cases.smoke_test import run_test


def _write_recipe(directory: Path, release: dict, extra: str = "") -> Path:
    """A gscloud-like recipe YAML pointing at a local release."""
    path = directory / "gscloud.yml"
    path.write_text(textwrap.dedent(f"""\
        name: gscloud
        url: {release['url']}
        sha256: {release['sha256']}
        build:
          ldflags: ["-s", "-w", "-X github.com/gridscale/gscloud/cmd.Version={{version}}"]
        smoke_test:
          - args: [version]
            expect: "Version:\\t{{version}}"
          - args: [help]
            expect: gscloud lets you manage
    """) + extra)
    return path


def _install(release: dict, **kwargs):
    return run_install("gscloud", url=release["url"], sha256=release["sha256"], **kwargs)


def _audit_ops(gsr_env) -> list[tuple[str, str]]:
    entries = AuditWriter(gsr_env["cache"] / "audit.ndjson").read_all()
    return [(e.operation, e.status) for e in entries]


# ── Install ──────────────────────────────────────────────────────────


class TestInstall:
    def test_installs_binary_and_completions(self, gsr_env, toolchain, release):
        result = _install(release)
        assert result.ok, result.error

        prefix = gsr_env["prefix"]
        binary = prefix / "bin" / "gscloud"
        assert binary.is_file()
        zsh = prefix / "share" / "zsh" / "site-functions" / "_gscloud"
        bash = prefix / "etc" / "bash_completion.d" / "gscloud"
        assert zsh.read_bytes() == ZSH_COMPLETION
        assert bash.read_bytes() == BASH_COMPLETION

        [call] = go_invocations(toolchain)
        staged = result.plan.actions[1].params["output"]
        assert call["args"][:3] == ["build", "-trimpath", f"-o={staged}"]
        assert not staged.startswith(str(prefix))
        assert binary.stat().st_mode & 0o777 == 0o755
        assert "-ldflags=-s -w -X github.com/gridscale/gscloud/cmd.Version=0.12.0" in call["args"]

    def test_records_state(self, gsr_env, toolchain, release):
        result = _install(release)
        record = load_state(gsr_env["cache"] / "installed.json").get("gscloud")
        assert record is not None
        assert record == result.artifacts
        assert record.version == "0.12.0"
        assert record.source == "tarball"
        assert record.completion_sha256["zsh"] == hashlib.sha256(ZSH_COMPLETION).hexdigest()
        assert record.binary_sha256 == hashlib.sha256(
            (gsr_env["prefix"] / "bin" / "gscloud").read_bytes()
        ).hexdigest()

    def test_audited_and_cleaned_up(self, gsr_env, toolchain, release):
        result = _install(release)
        assert _audit_ops(gsr_env) == [("install", "ok")]
        assert result.workdir is None
        assert list((gsr_env["cache"] / "builds").iterdir()) == []

    def test_keep_workdir(self, gsr_env, toolchain, release):
        result = _install(release, keep_workdir=True)
        assert (result.workdir / "src" / "go.mod").is_file()
        assert (result.workdir / "config.yaml").is_file()
        assert (result.workdir / "bin" / "gscloud").is_file()
        assert (result.workdir / "completions" / "zsh" / "_gscloud").read_bytes() == ZSH_COMPLETION

    def test_checksum_mismatch_builds_nothing(self, gsr_env, toolchain, release):
        result = run_install("gscloud", url=release["url"], sha256="0" * 64)

        assert not result.ok
        assert result.error_kind == "integrity"
        assert "mismatch" in result.error
        assert go_invocations(toolchain) == []
        prefix = gsr_env["prefix"]
        assert not (prefix / "bin" / "gscloud").exists()
        assert not (prefix / "share").exists()
        assert list((gsr_env["cache"] / "downloads").glob("*.tar.gz")) == []
        assert not (gsr_env["cache"] / "installed.json").exists()
        assert _audit_ops(gsr_env) == [("install", "failed")]

    def test_build_failure(self, gsr_env, toolchain, release, monkeypatch):
        monkeypatch.setenv("FAKE_GO_FAIL", "1")
        result = _install(release)

        assert result.error_kind == "build"
        assert "syntax error" in result.error
        assert not (gsr_env["prefix"] / "share").exists()
        assert len(result.report.not_run) == 4

    def test_completion_failure(self, gsr_env, toolchain, release):
        recipe_file = _write_recipe(gsr_env["cwd"], release, textwrap.dedent("""\
            completions:
              - shell: zsh
                args: [completions, zsh]
        """))
        result = run_install(str(recipe_file))

        assert result.error_kind == "completion"
        assert not gsr_env["prefix"].exists()
        assert not (gsr_env["cache"] / "installed.json").exists()
        assert result.report.not_run == [result.plan.actions[-1].id]

    def test_failed_upgrade_keeps_previous_install(self, gsr_env, toolchain, release, tmp_path: Path):
        assert _install(release).ok
        prefix = gsr_env["prefix"]
        binary = prefix / "bin" / "gscloud"
        zsh = prefix / "share" / "zsh" / "site-functions" / "_gscloud"
        before = binary.read_bytes()

        newer = make_release(tmp_path / "newer", version="0.13.0")
        recipe_file = _write_recipe(gsr_env["cwd"], newer, textwrap.dedent("""
            completions:
              - shell: zsh
                args: [completions, zsh]
        """))
        result = run_install(str(recipe_file))

        assert result.error_kind == "completion"
        assert binary.read_bytes() == before
        assert zsh.read_bytes() == ZSH_COMPLETION
        assert load_state(gsr_env["cache"] / "installed.json").get("gscloud").version == "0.12.0"
        assert run_test("gscloud").ok

    def test_version_override(self, gsr_env, toolchain, tmp_path: Path):
        newer = make_release(tmp_path / "newer", version="0.13.0")
        result = _install(newer)
        assert result.artifacts.version == "0.13.0"
        assert run_test("gscloud").ok

    def test_dry_run_changes_nothing(self, gsr_env, toolchain, release):
        result = _install(release, dry_run=True)

        assert result.ok
        assert result.report.skipped == result.plan.total_actions
        assert go_invocations(toolchain) == []
        assert not gsr_env["prefix"].exists()
        assert not (gsr_env["cache"] / "downloads").exists()
        assert not (gsr_env["cache"] / "audit.ndjson").exists()

    def test_head_without_repository(self, gsr_env, release):
        result = run_install(str(_write_recipe(gsr_env["cwd"], release)), head=True)
        assert result.error_kind == "config"
        assert "no head repository" in result.error

    def test_unknown_recipe(self, gsr_env):
        result = run_install("kubectl")
        assert result.error_kind == "config"
        assert result.report is None


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestHeadInstall:
    def _repo(self, root: Path) -> Path:
        repo = root / "gscloud.git"
        repo.mkdir()
        (repo / "go.mod").write_text("module github.com/gridscale/gscloud\n")
        (repo / "main.go").write_text("package main\n\nfunc main() {}\n")
        git = ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com"]
        subprocess.run([*git, "init", "-q", "-b", "master"], cwd=repo, check=True)
        subprocess.run([*git, "add", "."], cwd=repo, check=True)
        subprocess.run([*git, "commit", "-q", "-m", "init"], cwd=repo, check=True)
        return repo

    def test_head_build(self, gsr_env, toolchain, release, tmp_path: Path):
        repo = self._repo(tmp_path)
        recipe_file = _write_recipe(gsr_env["cwd"], release, textwrap.dedent(f"""\
            head:
              url: {repo.as_uri()}
              branch: master
        """))

        result = run_install(str(recipe_file), head=True)
        assert result.ok, result.error
        assert result.artifacts.source == "head"
        assert result.artifacts.version.startswith("HEAD-")
        [call] = go_invocations(toolchain)
        assert f"cmd.Version={result.artifacts.version}" in " ".join(call["args"])

        assert run_test(str(recipe_file)).ok


# ── Smoke test ───────────────────────────────────────────────────────


class TestSmokeTest:
    def test_after_install(self, gsr_env, toolchain, release):
        _install(release)
        result = run_test("gscloud")
        assert result.ok, result.error
        assert [r.status for r in result.report.receipts] == ["ok", "ok", "ok"]
        assert _audit_ops(gsr_env) == [("install", "ok"), ("test", "ok")]

    def test_version_mismatch(self, gsr_env, toolchain, release):
        _install(release)
        result = run_test("gscloud", version="0.13.0")
        assert result.error_kind == "assertion"
        assert "0.13.0" in result.error

    def test_binary_without_record(self, gsr_env):
        write_fake_gscloud(gsr_env["prefix"] / "bin" / "gscloud", version="0.12.0")
        assert run_test("gscloud").ok

    def test_not_installed(self, gsr_env):
        result = run_test("gscloud")
        assert result.error_kind == "config"
        assert "not installed" in result.error

    def test_recipe_without_smoke_test(self, gsr_env, release):
        path = gsr_env["cwd"] / "bare.yml"
        path.write_text(f"url: {release['url']}\nsha256: {release['sha256']}\n")
        result = run_test(str(path))
        assert "no smoke test" in result.error


# ── Completions, fetch, info ─────────────────────────────────────────


class TestCompletions:
    def test_regenerates(self, gsr_env, toolchain, release):
        _install(release)
        zsh = gsr_env["prefix"] / "share" / "zsh" / "site-functions" / "_gscloud"
        zsh.unlink()

        result = run_completions("gscloud")
        assert result.ok, result.error
        assert zsh.read_bytes() == ZSH_COMPLETION
        record = load_state(gsr_env["cache"] / "installed.json").get("gscloud")
        assert record.completions["zsh"] == str(zsh)

    def test_from_copied_binary(self, gsr_env):
        write_fake_gscloud(gsr_env["prefix"] / "bin" / "gscloud")
        assert run_completions("gscloud").ok
        bash = gsr_env["prefix"] / "etc" / "bash_completion.d" / "gscloud"
        assert bash.read_bytes() == BASH_COMPLETION

    def test_not_installed(self, gsr_env):
        assert run_completions("gscloud").error_kind == "config"


class TestFetch:
    def test_caches_verified_archive(self, gsr_env, toolchain, release):
        result = run_fetch("gscloud", url=release["url"], sha256=release["sha256"])
        assert result.ok, result.error
        archive = Path(result.report.variables["archive"])
        assert archive == gsr_env["cache"] / "downloads" / "gscloud--0.12.0.tar.gz"
        assert go_invocations(toolchain) == []
        assert not gsr_env["prefix"].exists()

    def test_mismatch(self, gsr_env, release):
        result = run_fetch("gscloud", url=release["url"], sha256="1" * 64)
        assert result.error_kind == "integrity"


class TestInfoAndCheck:
    def test_info_before_and_after(self, gsr_env, toolchain, release):
        info = get_info("gscloud")
        assert info.installed is None
        assert info.binary_present is False
        assert info.adapters["go"]["available"] is True
        assert set(info.adapters) == {"source", "go", "filesystem", "binary"}

        _install(release)
        info = get_info("gscloud")
        assert info.installed.version == "0.12.0"
        assert info.binary_present is True
        assert info.to_dict()["recipe"]["name"] == "gscloud"

    def test_check_builtin(self, gsr_env, toolchain):
        result = check_recipe("gscloud")
        assert result.valid
        assert result.errors == []

    def test_check_warnings(self, gsr_env, release):
        path = _write_recipe(gsr_env["cwd"], release)
        path.write_text(path.read_text().replace("cmd.Version={version}", "cmd.Version=dev"))
        result = check_recipe(str(path))
        assert result.valid
        assert any("{version}" in w for w in result.warnings)

    def test_check_unsupported_toolchain(self, gsr_env, release):
        path = gsr_env["cwd"] / "rusty.yml"
        path.write_text(
            f"url: {release['url']}\nsha256: {release['sha256']}\nbuild:\n  toolchain: cargo\n"
        )
        result = check_recipe(str(path))
        assert not result.valid
        assert "Unsupported toolchain" in result.errors[0]

    def test_check_invalid_file(self, gsr_env):
        result = check_recipe(str(gsr_env["cwd"] / "missing.yml"))
        assert not result.valid
        assert result.recipe is None
