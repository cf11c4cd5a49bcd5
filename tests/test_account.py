"""Tests for GitHubAccount: connected user and pushable repositories."""

from __future__ import annotations

import httpx
import pytest
import tenacity

from atomic_commit.auth.credentials import Credential
from atomic_commit.exceptions import CredentialExpiredError, ResponseError
from atomic_commit.models.config import PushConfig
from atomic_commit.remote.account import GitHubAccount
from atomic_commit.remote.github import GitHubClient
from tests.conftest import TOKEN, FakeGitHub


def repo_json(i: int, *, push: bool = True, private: bool = False) -> dict:
    return {
        "id": i,
        "name": f"repo{i}",
        "full_name": f"octocat/repo{i}",
        "private": private,
        "default_branch": "main",
        "html_url": f"https://github.com/octocat/repo{i}",
        "permissions": {"admin": False, "push": push, "pull": True},
    }


def make_account(fake: FakeGitHub) -> GitHubAccount:
    client = GitHubClient(
        Credential(TOKEN),
        PushConfig(max_retries=1),
        transport=fake.transport,
        retry_wait=tenacity.wait_none(),
    )
    return GitHubAccount(client)


class TestUser:
    def test_get_user(self, github: FakeGitHub) -> None:
        with make_account(github) as account:
            user = account.get_user()
        assert user.login == "octocat"
        assert user.name == "The Octocat"

    def test_rejected_token(self, github: FakeGitHub) -> None:
        github.override = lambda request: httpx.Response(401, json={"message": "Bad credentials"})
        with make_account(github) as account, pytest.raises(CredentialExpiredError):
            account.get_user()


class TestRepositories:
    def test_filters_by_push_permission(self, github: FakeGitHub) -> None:
        github.repo_pages = [[repo_json(1), repo_json(2, push=False), repo_json(3, private=True)]]
        with make_account(github) as account:
            repos = account.list_repositories()
        assert [r.full_name for r in repos] == ["octocat/repo1", "octocat/repo3"]
        assert repos[1].private is True
        assert repos[0].url == "https://github.com/octocat/repo1"

    def test_pages_until_short_page(self, github: FakeGitHub) -> None:
        github.repo_pages = [
            [repo_json(i) for i in range(100)],
            [repo_json(i) for i in range(100, 130)],
        ]
        with make_account(github) as account:
            repos = account.list_repositories()
        assert len(repos) == 130
        assert github.requested("GET", "/user/repos") == 2

    def test_max_pages(self, github: FakeGitHub) -> None:
        github.repo_pages = [[repo_json(i) for i in range(100)]] * 5
        with make_account(github) as account:
            repos = account.list_repositories(max_pages=2)
        assert len(repos) == 200
        assert github.requested("GET", "/user/repos") == 2

    def test_query_parameters(self, github: FakeGitHub) -> None:
        seen: list[httpx.Request] = []

        def spy(request: httpx.Request):
            seen.append(request)
            return None

        github.override = spy
        with make_account(github) as account:
            account.list_repositories()
        params = seen[0].url.params
        assert params["sort"] == "updated"
        assert params["per_page"] == "100"
        assert params["affiliation"] == "owner,collaborator"

    def test_unexpected_body(self, github: FakeGitHub) -> None:
        github.override = lambda request: httpx.Response(200, json={"message": "nope"})
        with make_account(github) as account, pytest.raises(ResponseError):
            account.list_repositories()

    def test_repository_missing_id(self, github: FakeGitHub) -> None:
        broken = repo_json(1)
        del broken["id"]
        github.repo_pages = [[broken]]
        with make_account(github) as account, pytest.raises(ResponseError, match="/user/repos"):
            account.list_repositories()

    def test_repository_entry_not_an_object(self, github: FakeGitHub) -> None:
        github.repo_pages = [["octocat/repo1"]]
        with make_account(github) as account, pytest.raises(ResponseError):
            account.list_repositories()


class TestMalformedUser:
    def test_user_without_login(self, github: FakeGitHub) -> None:
        github.user = {"id": 1}
        with make_account(github) as account, pytest.raises(ResponseError, match="/user"):
            account.get_user()
