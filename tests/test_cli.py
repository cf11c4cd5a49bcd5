"""Tests for the atomic-commit CLI using click's CliRunner."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from atomic_commit.cli import cli
from atomic_commit.remote.memory import InMemoryObjectStore
from tests.conftest import REPO, TOKEN, FakeGitHub

_RealClient = httpx.Client


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def fake_api(github: FakeGitHub, monkeypatch: pytest.MonkeyPatch) -> FakeGitHub:
    """Route every GitHubClient session through the fake API."""

    def client(*args, **kwargs):
        kwargs["transport"] = github.transport
        return _RealClient(*args, **kwargs)

    monkeypatch.setattr("atomic_commit.remote.github.httpx.Client", client)
    monkeypatch.setenv("ATOMIC_COMMIT_MAX_RETRIES", "1")
    monkeypatch.setenv("ATOMIC_COMMIT_BLOB_RETRY_BACKOFF", "0")
    monkeypatch.delenv("ATOMIC_COMMIT_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("ATOMIC_COMMIT_REPO", raising=False)
    return github


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    (tmp_path / "manifest.json").write_text('{"name": "Demo"}', encoding="utf-8")
    (tmp_path / "popup.html").write_text("<html></html>", encoding="utf-8")
    return tmp_path


class TestPush:
    def test_push_files(self, runner: CliRunner, fake_api: FakeGitHub, workdir: Path) -> None:
        result = runner.invoke(cli, [
            "--token", TOKEN, "push", "--repo", REPO, "-m", "Add extension files",
            f"{workdir / 'manifest.json'}:manifest.json",
            f"{workdir / 'popup.html'}:ui/popup.html",
        ])
        assert result.exit_code == 0, result.output
        assert "Pushed" in result.output
        assert f"https://github.com/{REPO}/commit/" in result.output
        files = fake_api.store.files_at("main")
        assert files["manifest.json"] == '{"name": "Demo"}'
        assert files["ui/popup.html"] == "<html></html>"

    def test_token_from_environment(
        self, runner: CliRunner, fake_api: FakeGitHub, workdir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        result = runner.invoke(cli, [
            "push", "--repo", REPO, "-m", "msg", f"{workdir / 'popup.html'}:popup.html",
        ])
        assert result.exit_code == 0, result.output
        assert "Bearer env-token" in fake_api.auth_headers

    def test_not_connected(self, runner: CliRunner, fake_api: FakeGitHub, workdir: Path) -> None:
        result = runner.invoke(cli, [
            "push", "--repo", REPO, "-m", "msg", f"{workdir / 'popup.html'}:popup.html",
        ])
        assert result.exit_code == 1
        assert "Not connected" in result.output
        assert fake_api.requests == []

    def test_conflict_exit_code(self, runner: CliRunner, fake_api: FakeGitHub, workdir: Path) -> None:
        store: InMemoryObjectStore = fake_api.store
        c0 = store.read_ref("main").commit_sha
        sibling = store.create_commit(store.read_commit(c0).tree_sha, [c0], "concurrent").sha
        fake_api.before_patch = lambda: store.set_ref("main", sibling)

        result = runner.invoke(cli, [
            "--token", TOKEN, "push", "--repo", REPO, "-m", "msg",
            f"{workdir / 'popup.html'}:popup.html",
        ])
        assert result.exit_code == 2
        assert "Pull the latest changes" in result.output
        assert store.read_ref("main").commit_sha == sibling

    def test_unreadable_file(self, runner: CliRunner, fake_api: FakeGitHub, tmp_path: Path) -> None:
        result = runner.invoke(cli, [
            "--token", TOKEN, "push", "--repo", REPO, "-m", "msg", str(tmp_path / "missing.txt"),
        ])
        assert result.exit_code == 1
        assert "Cannot read" in result.output
        assert fake_api.requests == []

    def test_bad_repo_name(self, runner: CliRunner, fake_api: FakeGitHub, workdir: Path) -> None:
        result = runner.invoke(cli, [
            "--token", TOKEN, "push", "--repo", "not-a-repo", "-m", "msg",
            f"{workdir / 'popup.html'}:popup.html",
        ])
        assert result.exit_code == 1
        assert "owner/name" in result.output

    def test_message_required(self, runner: CliRunner, fake_api: FakeGitHub, workdir: Path) -> None:
        result = runner.invoke(cli, ["--token", TOKEN, "push", "--repo", REPO, str(workdir / "popup.html")])
        assert result.exit_code != 0
        assert "--message" in result.output


class TestAccountCommands:
    def test_whoami(self, runner: CliRunner, fake_api: FakeGitHub) -> None:
        result = runner.invoke(cli, ["--token", TOKEN, "whoami"])
        assert result.exit_code == 0, result.output
        assert "Connected as" in result.output
        assert "octocat" in result.output

    def test_whoami_rejected(self, runner: CliRunner, fake_api: FakeGitHub) -> None:
        fake_api.override = lambda request: httpx.Response(401, json={"message": "Bad credentials"})
        result = runner.invoke(cli, ["--token", TOKEN, "whoami"])
        assert result.exit_code == 1
        assert "reconnect" in result.output

    def test_repos(self, runner: CliRunner, fake_api: FakeGitHub) -> None:
        fake_api.repo_pages = [[
            {
                "id": 1, "name": "extension", "full_name": REPO, "private": True,
                "default_branch": "main", "html_url": f"https://github.com/{REPO}",
                "permissions": {"push": True},
            },
            {
                "id": 2, "name": "readonly", "full_name": "octo/readonly", "private": False,
                "default_branch": "main", "html_url": "https://github.com/octo/readonly",
                "permissions": {"push": False},
            },
        ]]
        result = runner.invoke(cli, ["--token", TOKEN, "repos"])
        assert result.exit_code == 0, result.output
        assert REPO in result.output
        assert "octo/readonly" not in result.output

    def test_repos_empty(self, runner: CliRunner, fake_api: FakeGitHub) -> None:
        result = runner.invoke(cli, ["--token", TOKEN, "repos"])
        assert result.exit_code == 0
        assert "No repositories" in result.output

    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("push", "repos", "whoami"):
            assert command in result.output


class TestConfiguration:
    def test_invalid_environment_value(
        self, runner: CliRunner, fake_api: FakeGitHub, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ATOMIC_COMMIT_MAX_WORKERS", "many")
        result = runner.invoke(cli, ["--token", TOKEN, "whoami"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert "max_workers" in result.output
        assert isinstance(result.exception, SystemExit)
        assert fake_api.requests == []
