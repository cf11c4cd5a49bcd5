"""Shared test fixtures for atomic-commit.

Provides a seeded in-memory object store, a fault-injecting store
wrapper, and a fake GitHub Git Data API served through httpx.MockTransport.
"""

from __future__ import annotations

import json
import re
import threading
import time
from collections import Counter
from datetime import datetime, timezone

import httpx
import pytest
import tenacity

from atomic_commit.auth.credentials import CredentialAccessor, StaticSessionProvider
from atomic_commit.exceptions import (
    NetworkError,
    ObjectNotFoundError,
    PathConflictError,
    RefNotFoundError,
)
from atomic_commit.models.config import PushConfig
from atomic_commit.models.objects import CommitAuthor, EntryType, FileMode, TreeEntry
from atomic_commit.orchestrator import PushOrchestrator
from atomic_commit.remote.github import GitHubObjectStore
from atomic_commit.remote.memory import InMemoryObjectStore

FIXED_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
TOKEN = "ghp_test_token"
REPO = "octo/extension"


def fixed_clock() -> datetime:
    return FIXED_TIME


@pytest.fixture
def store() -> InMemoryObjectStore:
    """In-memory store whose ``main`` holds a single README.md (commit C0)."""
    s = InMemoryObjectStore(clock=fixed_clock)
    s.seed("main", {"README.md": "# Extension\n"}, message="Initial commit")
    s.calls.clear()
    return s


def fast_config(**overrides) -> PushConfig:
    """PushConfig with no backoff and single-attempt calls."""
    values = {"max_retries": 1, "blob_retry_backoff": 0.0}
    values.update(overrides)
    return PushConfig(**values)


def make_orchestrator(store, *, token: str | None = TOKEN, on_state=None, **config) -> PushOrchestrator:
    """Orchestrator pushing straight into ``store`` (memory or wrapper)."""
    return PushOrchestrator(
        CredentialAccessor(StaticSessionProvider(token)),
        lambda credential, scope=None: store,
        fast_config(**config),
        on_state=on_state,
    )


# ---------------------------------------------------------------------------
# Fault injection over the in-memory store
# ---------------------------------------------------------------------------


class FlakyStore:
    """Delegates to an InMemoryObjectStore, failing create_blob on demand.

    Args:
        inner: Store that actually holds the objects.
        fail_times: content -> number of NetworkErrors to raise before succeeding.
        errors: content -> exception raised on every attempt.
        gate: If set, create_blob blocks until the event is set.
    """

    web_url = None

    def __init__(self, inner, *, fail_times=None, errors=None, gate: threading.Event | None = None):
        self.inner = inner
        self.fail_times = dict(fail_times or {})
        self.errors = dict(errors or {})
        self.gate = gate
        self.blob_attempts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def create_blob(self, content: str) -> str:
        with self._lock:
            self.blob_attempts[content] += 1
            remaining = self.fail_times.get(content, 0)
            if remaining:
                self.fail_times[content] = remaining - 1
        if content in self.errors:
            raise self.errors[content]
        if remaining:
            raise NetworkError("simulated timeout")
        if self.gate is not None:
            self.gate.wait(5)
        return self.inner.create_blob(content)


# ---------------------------------------------------------------------------
# Fake GitHub API
# ---------------------------------------------------------------------------

_GIT_ROUTE = re.compile(r"^/repos/(?P<repo>[^/]+/[^/]+)/git/(?P<rest>.+)$")


class FakeGitHub:
    """A tiny GitHub Git Data API over an InMemoryObjectStore.

    Attributes:
        requests: (method, path) of every request received, in order.
        blob_timeouts: content -> number of ReadTimeouts to raise first.
        override: Optional callable(request) returning a canned response.
        before_patch: Optional callable run before a ref PATCH is applied.
        repo_pages: Pages returned from /user/repos.
    """

    def __init__(self, store: InMemoryObjectStore) -> None:
        self.store = store
        self.requests: list[tuple[str, str]] = []
        self.auth_headers: list[str | None] = []
        self.blob_timeouts: dict[str, int] = {}
        self.override = None
        self.before_patch = None
        self.user = {"login": "octocat", "id": 1, "name": "The Octocat"}
        self.repo_pages: list[list[dict]] = []
        self._lock = threading.Lock()
        self.transport = httpx.MockTransport(self.handler)

    def requested(self, method: str, suffix: str) -> int:
        return sum(1 for m, p in self.requests if m == method and p.endswith(suffix))

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append((request.method, request.url.path))
            self.auth_headers.append(request.headers.get("Authorization"))
        if self.override is not None:
            canned = self.override(request)
            if canned is not None:
                return canned

        path = request.url.path
        if path == "/user":
            return httpx.Response(200, json=self.user)
        if path == "/user/repos":
            page = int(request.url.params.get("page", "1"))
            batch = self.repo_pages[page - 1] if page <= len(self.repo_pages) else []
            return httpx.Response(200, json=batch)

        match = _GIT_ROUTE.match(path)
        if match is None:
            return httpx.Response(404, json={"message": "Not Found"})
        body = json.loads(request.content) if request.content else None
        try:
            return self._git(request, match["rest"], body)
        except (RefNotFoundError, ObjectNotFoundError):
            return httpx.Response(404, json={"message": "Not Found"})
        except PathConflictError as exc:
            return httpx.Response(422, json={"message": str(exc)})

    def _git(self, request: httpx.Request, rest: str, body) -> httpx.Response:
        method = request.method
        if method == "GET" and rest.startswith("ref/"):
            ref = self.store.read_ref(rest[len("ref/"):])
            return httpx.Response(200, json=self._ref_json(ref.name, ref.commit_sha))

        if method == "GET" and rest.startswith("commits/"):
            commit = self.store.read_commit(rest[len("commits/"):])
            return httpx.Response(200, json=self._commit_json(commit))

        if method == "GET" and rest.startswith("trees/"):
            tree = self.store.read_tree(rest[len("trees/"):])
            return httpx.Response(200, json={
                "sha": tree.sha,
                "tree": [e.to_wire() for e in tree.entries],
                "truncated": False,
            })

        if method == "POST" and rest == "blobs":
            content = body["content"]
            with self._lock:
                remaining = self.blob_timeouts.get(content, 0)
                if remaining:
                    self.blob_timeouts[content] = remaining - 1
            if remaining:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(201, json={"sha": self.store.create_blob(content)})

        if method == "POST" and rest == "trees":
            entries = [
                TreeEntry(path=t["path"], mode=FileMode(t["mode"]), type=EntryType(t["type"]), sha=t["sha"])
                for t in body["tree"]
            ]
            sha = self.store.create_tree(entries, base_tree=body.get("base_tree"))
            return httpx.Response(201, json={"sha": sha})

        if method == "POST" and rest == "commits":
            author = CommitAuthor(**body["author"]) if "author" in body else None
            commit = self.store.create_commit(body["tree"], body["parents"], body["message"], author)
            return httpx.Response(201, json=self._commit_json(commit))

        if method == "PATCH" and rest.startswith("refs/"):
            name = rest[len("refs/"):]
            if self.before_patch is not None:
                self.before_patch()
            current = self.store.read_ref(name).commit_sha
            new = body["sha"]
            if not body.get("force") and not self._is_ancestor(current, new):
                return httpx.Response(422, json={"message": "Update is not a fast forward"})
            ref = self.store.update_ref(name, current, new)
            return httpx.Response(200, json=self._ref_json(ref.name, ref.commit_sha))

        return httpx.Response(404, json={"message": "Not Found"})

    def _is_ancestor(self, ancestor: str, commit: str) -> bool:
        stack = [commit]
        seen: set[str] = set()
        while stack:
            sha = stack.pop()
            if sha == ancestor:
                return True
            if sha in seen:
                continue
            seen.add(sha)
            stack.extend(self.store.read_commit(sha).parent_shas)
        return False

    @staticmethod
    def _ref_json(name: str, sha: str) -> dict:
        return {"ref": f"refs/{name}", "object": {"sha": sha, "type": "commit"}}

    @staticmethod
    def _commit_json(commit) -> dict:
        data = {
            "sha": commit.sha,
            "tree": {"sha": commit.tree_sha},
            "parents": [{"sha": p} for p in commit.parent_shas],
            "message": commit.message,
        }
        if commit.author is not None:
            data["author"] = commit.author.model_dump(mode="json")
        return data


@pytest.fixture
def github(store: InMemoryObjectStore) -> FakeGitHub:
    return FakeGitHub(store)


def github_factory(fake: FakeGitHub, *, retry_wait=None, **config):
    """StoreFactory building GitHubObjectStores that talk to ``fake``."""
    return GitHubObjectStore.factory(
        REPO,
        fast_config(**config),
        transport=fake.transport,
        retry_wait=retry_wait or tenacity.wait_none(),
    )


def make_github_orchestrator(
    fake: FakeGitHub, *, token: str | None = TOKEN, on_state=None, retry_wait=None, **config
):
    return PushOrchestrator(
        CredentialAccessor(StaticSessionProvider(token)),
        github_factory(fake, retry_wait=retry_wait, **config),
        fast_config(**config),
        on_state=on_state,
    )


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
