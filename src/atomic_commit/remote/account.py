"""Account operations on GitHub: who is connected and where they can push."""

from __future__ import annotations

import logging

from atomic_commit.exceptions import ResponseError
from atomic_commit.models.account import RepositoryInfo, UserInfo
from atomic_commit.remote.github import GitHubClient, _response_format

logger = logging.getLogger(__name__)

_PER_PAGE = 100


class GitHubAccount:
    """Read-only account queries sharing a GitHubClient's session and retry policy."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    def get_user(self) -> UserInfo:
        response = self._client.request("GET", "/user")
        data = self._client.json(response)
        if not isinstance(data, dict):
            raise ResponseError("Unexpected response format for /user")
        with _response_format("/user"):
            return UserInfo.model_validate(data)

    def list_repositories(self, *, max_pages: int = 10) -> list[RepositoryInfo]:
        """List repositories the account can push to, most recently updated first.

        Args:
            max_pages: Upper bound on pages of 100 fetched.
        """
        repos: list[RepositoryInfo] = []
        for page in range(1, max_pages + 1):
            response = self._client.request(
                "GET",
                "/user/repos",
                params={
                    "sort": "updated",
                    "per_page": _PER_PAGE,
                    "page": page,
                    "affiliation": "owner,collaborator",
                },
            )
            batch = self._client.json(response)
            if not isinstance(batch, list):
                raise ResponseError("Unexpected response format for /user/repos")
            with _response_format("/user/repos"):
                for item in batch:
                    if not (item.get("permissions") or {}).get("push"):
                        continue
                    repos.append(
                        RepositoryInfo(
                            id=item["id"],
                            name=item["name"],
                            full_name=item["full_name"],
                            private=bool(item.get("private")),
                            default_branch=item.get("default_branch") or "main",
                            url=item["html_url"],
                        )
                    )
            if len(batch) < _PER_PAGE:
                break
        logger.debug("Found %d pushable repositories", len(repos))
        return repos

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubAccount:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
