"""Atomic commit exception hierarchy.

All atomic-commit exceptions inherit from AtomicCommitError. Each class
carries a stable ``kind`` string so callers can switch on the failure
without importing every class.
"""

from __future__ import annotations

from collections.abc import Iterable


class AtomicCommitError(Exception):
    """Base exception for all atomic-commit errors.

    Attributes:
        state: The push state the error was raised in, once the
            orchestrator has annotated it (None for direct store calls).
        paths_written: Paths visible on the target ref after the failure.
            Always empty: a failed push never moves the ref.
        paths_not_written: Every path the failed request asked for.
    """

    kind = "error"

    state: object | None = None
    paths_written: tuple[str, ...] = ()
    paths_not_written: tuple[str, ...] = ()


class PushConfigError(AtomicCommitError):
    """Missing or invalid configuration (e.g., malformed repository name)."""

    kind = "config"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialError(AtomicCommitError):
    """Base for credential errors. Never retried automatically."""


class NotConnectedError(CredentialError):
    """No credential is available in the session."""

    kind = "not_connected"

    def __init__(self, message: str = "Not connected. Connect an account first.") -> None:
        super().__init__(message)


class CredentialExpiredError(CredentialError):
    """The credential was rejected (401) or is past its expiry."""

    kind = "expired"

    def __init__(self, message: str = "Connection expired. Please reconnect.") -> None:
        super().__init__(message)


class PermissionDeniedError(AtomicCommitError):
    """The credential is valid but lacks push access (403)."""

    kind = "permission_denied"

    def __init__(self, message: str = "You don't have push access to this repository.") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class RefNotFoundError(AtomicCommitError):
    """Raised when the target ref does not exist (wrong branch or empty repo)."""

    kind = "ref_not_found"

    def __init__(self, ref_name: str) -> None:
        self.ref_name = ref_name
        super().__init__(f"Ref not found: {ref_name}")


class ObjectNotFoundError(AtomicCommitError):
    """Raised when a commit or tree lookup fails."""

    kind = "object_not_found"

    def __init__(self, object_type: str, object_hash: str) -> None:
        self.object_type = object_type
        self.object_hash = object_hash
        super().__init__(f"{object_type.capitalize()} not found: {object_hash}")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


class PathConflictError(AtomicCommitError):
    """A file path collides with a directory (or a file with a directory prefix)."""

    kind = "path_conflict"

    def __init__(self, path: str, reason: str = "path collides with an existing directory") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Path conflict at '{path}': {reason}")


class InvalidPathError(PathConflictError):
    """A requested path is not a clean relative path."""

    kind = "invalid_path"


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class PartialBlobFailureError(AtomicCommitError):
    """One or more blobs could not be created after all retry rounds.

    Attributes:
        failed_paths: Paths whose blob never landed, sorted.
        causes: Last exception seen per failed path.
    """

    kind = "partial_blob_failure"

    def __init__(self, failed_paths: Iterable[str], causes: dict[str, BaseException] | None = None) -> None:
        self.failed_paths = tuple(sorted(failed_paths))
        self.causes = dict(causes or {})
        super().__init__(
            f"Failed to create blobs for {len(self.failed_paths)} path(s): "
            f"{', '.join(self.failed_paths)}"
        )


class RefConflictError(AtomicCommitError):
    """The ref moved since it was read; the compare-and-swap was rejected.

    This is a normal outcome of concurrent pushes to one branch. The
    caller decides whether to refresh and push again.
    """

    kind = "conflict"

    def __init__(self, ref_name: str, expected_hash: str, actual_hash: str | None = None) -> None:
        self.ref_name = ref_name
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        msg = f"Ref '{ref_name}' changed since it was read (expected {expected_hash[:8]}"
        if actual_hash:
            msg += f", found {actual_hash[:8]}"
        msg += "). Someone else changed the target; refresh and retry."
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class NetworkError(AtomicCommitError):
    """Transient transport failure or 5xx response. Retryable."""

    kind = "network"


class RateLimitError(NetworkError):
    """Rate limited by the API (429, or 403 with exhausted quota).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header),
            or None if not provided.
    """

    kind = "rate_limited"

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class PushCancelledError(AtomicCommitError):
    """The push was cancelled or ran past its deadline. The ref is untouched."""

    kind = "cancelled"


class ResponseError(AtomicCommitError):
    """Unexpected response format from the object store."""

    kind = "response"


RETRYABLE_ERRORS: tuple[type[AtomicCommitError], ...] = (NetworkError,)
