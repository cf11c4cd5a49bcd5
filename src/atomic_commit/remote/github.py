"""GitHub Git Data API object store, built on httpx with tenacity retry.

GitHubClient owns the HTTP session, status-code mapping and retry policy.
GitHubObjectStore and GitHubAccount compose it into the object-store and
account operations.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import urlsplit

import httpx
import tenacity

from atomic_commit.auth.credentials import Credential
from atomic_commit.exceptions import (
    RETRYABLE_ERRORS,
    CredentialExpiredError,
    NetworkError,
    ObjectNotFoundError,
    PermissionDeniedError,
    PushConfigError,
    RateLimitError,
    RefConflictError,
    RefNotFoundError,
    ResponseError,
)
from atomic_commit.models.config import PushConfig
from atomic_commit.models.objects import (
    CommitAuthor,
    CommitInfo,
    EntryType,
    FileMode,
    RefInfo,
    TreeEntry,
    TreeSnapshot,
)
from atomic_commit.remote.protocols import qualify_ref

if TYPE_CHECKING:
    from atomic_commit.engine.cancel import CancelScope

logger = logging.getLogger(__name__)

_REPO_NAME = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_MAX_RETRY_AFTER = 60.0
_DEFAULT_WAIT = tenacity.wait_exponential(multiplier=1, min=1, max=30) + tenacity.wait_random(0, 2)


def _is_retryable(exc: BaseException) -> bool:
    """Retryable: transport errors, 5xx, rate limits. Never credential errors."""
    return isinstance(exc, RETRYABLE_ERRORS)


def _retry_after_wait(fallback: Callable[[tenacity.RetryCallState], float]):
    """Honour Retry-After on rate limits, otherwise defer to ``fallback``."""

    def wait(retry_state: tenacity.RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            return min(exc.retry_after, _MAX_RETRY_AFTER)
        return fallback(retry_state)

    return wait


def _parse_retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text


def validate_repo_name(repo: str) -> str:
    """Validate an ``owner/name`` repository name. Raises PushConfigError."""
    if not _REPO_NAME.match(repo or ""):
        raise PushConfigError(f"Invalid repository name '{repo}': expected 'owner/name'")
    return repo


class GitHubClient:
    """Sync httpx client for the GitHub REST API.

    Supports retry with exponential backoff for transient errors
    (transport failures, 5xx, rate limits). Fails immediately on
    credential errors (401), which must surface as "reconnect required".

    Usage::

        with GitHubClient(credential, PushConfig()) as client:
            response = client.request("GET", "/user")
    """

    def __init__(
        self,
        credential: Credential,
        config: PushConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        retry_wait: Callable[[tenacity.RetryCallState], float] | None = None,
        scope: CancelScope | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            credential: Bearer credential for the API.
            config: Push configuration. Defaults to PushConfig().
            transport: Optional httpx transport (e.g. httpx.MockTransport).
            retry_wait: Optional tenacity wait strategy replacing the
                default exponential backoff.
            scope: Cancel scope of the push this client serves. Checked
                before every attempt; retries sleep on it and each
                request's timeout is capped at the time it has left.
        """
        self.config = config or PushConfig()
        self._wait = _retry_after_wait(retry_wait or _DEFAULT_WAIT)
        self._scope = scope
        self._client = httpx.Client(
            base_url=self.config.api_base_url.rstrip("/"),
            timeout=self.config.request_timeout,
            transport=transport,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {credential.token}",
                "User-Agent": self.config.user_agent,
                "X-GitHub-Api-Version": self.config.api_version,
            },
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        passthrough: Sequence[int] = (),
    ) -> httpx.Response:
        """Send a request with retry.

        The retry policy is assembled per request from this client's
        config and cancel scope, so two clients with different
        ``max_retries`` or deadlines never share state.

        Args:
            method: HTTP method.
            path: Path relative to the API base URL.
            json: Optional JSON body.
            params: Optional query parameters.
            passthrough: 4xx status codes returned to the caller instead
                of raised, for endpoint-specific handling.

        Raises:
            CredentialExpiredError: On 401 (no retry).
            PermissionDeniedError: On 403 without rate limiting (no retry).
            RateLimitError: On 429 or exhausted quota, after all retries.
            NetworkError: On transport errors or 5xx, after all retries.
            ResponseError: On any other unexpected status.
            PushCancelledError: If the scope is cancelled or expires
                before or between attempts.
        """
        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=self._wait,
            stop=tenacity.stop_after_attempt(self.config.max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
            sleep=self._sleep,
        )
        return retryer(
            self._do_request, method, path, json=json, params=params, passthrough=passthrough
        )

    def _do_request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        passthrough: Sequence[int] = (),
    ) -> httpx.Response:
        """Execute a single request (no retry)."""
        if self._scope is not None:
            self._scope.check()
        logger.debug("%s %s", method, path)
        try:
            response = self._client.request(
                method, path, json=json, params=params, timeout=self._timeout()
            )
        except httpx.TimeoutException as exc:
            if self._scope is not None:
                self._scope.check()
            raise NetworkError(f"Timed out: {method} {path}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Connection failed: {method} {path}: {exc}") from exc

        status = response.status_code
        if status == 401:
            raise CredentialExpiredError()
        if status == 429 or (status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"):
            raise RateLimitError(
                f"Rate limited: HTTP {status}", retry_after=_parse_retry_after(response)
            )
        if status >= 500:
            raise NetworkError(f"Server error: HTTP {status} - {_error_message(response)}")
        if status in passthrough:
            return response
        if status == 403:
            raise PermissionDeniedError()
        if status >= 400:
            raise ResponseError(
                f"Unexpected response: HTTP {status} from {method} {path} - "
                f"{_error_message(response)}"
            )
        return response

    def _timeout(self) -> Any:
        remaining = self._scope.remaining() if self._scope is not None else None
        if remaining is None:
            return httpx.USE_CLIENT_DEFAULT
        return max(0.01, min(self.config.request_timeout, remaining))

    def _sleep(self, seconds: float) -> None:
        """Back off between attempts, waking early and raising on cancellation."""
        if self._scope is None:
            time.sleep(seconds)
        else:
            self._scope.sleep(seconds)

    @staticmethod
    def json(response: httpx.Response) -> Any:
        """Decode a JSON body. Raises ResponseError on malformed bodies."""
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseError(
                f"Malformed JSON from {response.request.method} {response.request.url.path}"
            ) from exc

    def close(self) -> None:
        """Close the underlying httpx client."""
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _get(data: Any, *keys: str) -> Any:
    """Walk nested dict keys, raising ResponseError on a missing key."""
    node = data
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            raise ResponseError(f"Unexpected response format: missing '{'.'.join(keys)}'")
        node = node[key]
    return node


@contextmanager
def _response_format(what: str) -> Iterator[None]:
    """Re-raise malformed response data (wrong types, unknown modes) as ResponseError."""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ResponseError(f"Unexpected response format for {what}: {exc}") from exc


def _parse_author(data: Any) -> CommitAuthor | None:
    if not isinstance(data, dict) or "name" not in data:
        return None
    return CommitAuthor(name=data["name"], email=data.get("email", ""), date=data.get("date"))


def web_url_for(api_base_url: str, repo: str) -> str:
    """Browser URL of a repository, for github.com or GitHub Enterprise."""
    parts = urlsplit(api_base_url)
    host = parts.netloc
    if host == "api.github.com":
        return f"https://github.com/{repo}"
    return f"{parts.scheme}://{host}/{repo}"


class GitHubObjectStore:
    """Object store backed by the GitHub Git Data API.

    Implements the ObjectStore protocol for one repository.
    """

    def __init__(self, client: GitHubClient, repo: str) -> None:
        self._client = client
        self.repo = validate_repo_name(repo)
        self._prefix = f"/repos/{repo}/git"
        self.web_url: str | None = web_url_for(client.config.api_base_url, repo)

    @classmethod
    def factory(
        cls,
        repo: str,
        config: PushConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        retry_wait: Callable[[tenacity.RetryCallState], float] | None = None,
    ) -> Callable[..., GitHubObjectStore]:
        """Return a StoreFactory building one store (and HTTP session) per push."""
        validate_repo_name(repo)

        def build(credential: Credential, scope: CancelScope | None = None) -> GitHubObjectStore:
            client = GitHubClient(
                credential, config, transport=transport, retry_wait=retry_wait, scope=scope
            )
            return cls(client, repo)

        return build

    # -- reads --------------------------------------------------------------

    def read_ref(self, name: str) -> RefInfo:
        ref = qualify_ref(name)
        # 409 is GitHub's answer for an empty repository
        response = self._client.request("GET", f"{self._prefix}/ref/{ref}", passthrough=(404, 409))
        if response.status_code in (404, 409):
            raise RefNotFoundError(name)
        data = self._client.json(response)
        if isinstance(data, list):
            raise RefNotFoundError(name)
        with _response_format("ref"):
            return RefInfo(name=ref, commit_sha=_get(data, "object", "sha"))

    def read_commit(self, sha: str) -> CommitInfo:
        response = self._client.request("GET", f"{self._prefix}/commits/{sha}", passthrough=(404,))
        if response.status_code == 404:
            raise ObjectNotFoundError("commit", sha)
        data = self._client.json(response)
        with _response_format("commit"):
            return CommitInfo(
                sha=_get(data, "sha"),
                tree_sha=_get(data, "tree", "sha"),
                parent_shas=[p["sha"] for p in data.get("parents", [])],
                message=data.get("message", ""),
                author=_parse_author(data.get("author")),
            )

    def read_tree(self, sha: str) -> TreeSnapshot:
        response = self._client.request(
            "GET", f"{self._prefix}/trees/{sha}", params={"recursive": "1"}, passthrough=(404,)
        )
        if response.status_code == 404:
            raise ObjectNotFoundError("tree", sha)
        data = self._client.json(response)
        with _response_format("tree"):
            entries = [
                TreeEntry(
                    path=item["path"],
                    mode=FileMode(item["mode"]),
                    type=EntryType(item["type"]),
                    sha=item["sha"],
                )
                for item in _get(data, "tree")
            ]
            return TreeSnapshot(
                sha=_get(data, "sha"), entries=entries, truncated=bool(data.get("truncated"))
            )

    # -- writes -------------------------------------------------------------

    def create_blob(self, content: str) -> str:
        response = self._client.request(
            "POST", f"{self._prefix}/blobs", json={"content": content, "encoding": "utf-8"}
        )
        return _get(self._client.json(response), "sha")

    def create_tree(self, entries: Sequence[TreeEntry], base_tree: str | None = None) -> str:
        payload: dict[str, Any] = {"tree": [e.to_wire() for e in entries]}
        if base_tree is not None:
            payload["base_tree"] = base_tree
        response = self._client.request("POST", f"{self._prefix}/trees", json=payload)
        return _get(self._client.json(response), "sha")

    def create_commit(
        self,
        tree_sha: str,
        parent_shas: Sequence[str],
        message: str,
        author: CommitAuthor | None = None,
    ) -> CommitInfo:
        payload: dict[str, Any] = {
            "message": message,
            "tree": tree_sha,
            "parents": list(parent_shas),
        }
        if author is not None:
            payload["author"] = author.model_dump(mode="json", exclude_none=True)
        response = self._client.request("POST", f"{self._prefix}/commits", json=payload)
        data = self._client.json(response)
        with _response_format("commit"):
            return CommitInfo(
                sha=_get(data, "sha"),
                tree_sha=tree_sha,
                parent_shas=list(parent_shas),
                message=message,
                author=_parse_author(data.get("author")) or author,
            )

    def update_ref(self, name: str, expected_sha: str, new_sha: str) -> RefInfo:
        """Move a branch from ``expected_sha`` to ``new_sha``.

        The REST API has no old-value precondition, so the swap is the
        pair of a fresh read (must equal ``expected_sha``) and a
        non-forced PATCH, which the server rejects unless ``new_sha``
        descends from the ref's value at that moment. With ``new_sha``
        a single-parent child of ``expected_sha``, any concurrent move
        fails the fast-forward check.
        """
        current = self.read_ref(name).commit_sha
        if current != expected_sha:
            raise RefConflictError(name, expected_sha, current)

        ref = qualify_ref(name)
        response = self._client.request(
            "PATCH",
            f"{self._prefix}/refs/{ref}",
            json={"sha": new_sha, "force": False},
            passthrough=(409, 422),
        )
        if response.status_code == 422 and "fast forward" not in _error_message(response).lower():
            raise ResponseError(f"Ref update rejected: {_error_message(response)}")
        if response.status_code in (409, 422):
            logger.info("Ref update rejected: %s", _error_message(response))
            raise RefConflictError(name, expected_sha)
        data = self._client.json(response)
        with _response_format("ref"):
            return RefInfo(name=ref, commit_sha=_get(data, "object", "sha"))

    def close(self) -> None:
        self._client.close()
