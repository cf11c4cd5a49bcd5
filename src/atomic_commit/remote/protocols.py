"""Object store protocol.

Defines the pluggable interface the push pipeline writes through. The
built-in GitHubObjectStore and InMemoryObjectStore implement it.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Callable, Optional, Protocol, runtime_checkable

from atomic_commit.auth.credentials import Credential
from atomic_commit.models.objects import (
    CommitAuthor,
    CommitInfo,
    RefInfo,
    TreeEntry,
    TreeSnapshot,
)

if TYPE_CHECKING:
    from atomic_commit.engine.cancel import CancelScope


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for content-addressable object stores.

    Object creation is idempotent by content: writing the same blob, tree
    or commit twice returns the same hash and is never a conflict. The
    ref is the only mutable resource and only moves through update_ref().

    Errors are raised as atomic_commit.exceptions types.
    """

    web_url: Optional[str]

    def read_ref(self, name: str) -> RefInfo:
        """Return the commit a ref points at. Raises RefNotFoundError."""
        ...

    def read_commit(self, sha: str) -> CommitInfo:
        """Return a commit. Raises ObjectNotFoundError."""
        ...

    def read_tree(self, sha: str) -> TreeSnapshot:
        """Return a tree flattened recursively to full paths. Raises ObjectNotFoundError."""
        ...

    def create_blob(self, content: str) -> str:
        """Store a UTF-8 text blob and return its hash."""
        ...

    def create_tree(self, entries: Sequence[TreeEntry], base_tree: str | None = None) -> str:
        """Create a tree from ``base_tree`` overlaid with ``entries`` and return its hash."""
        ...

    def create_commit(
        self,
        tree_sha: str,
        parent_shas: Sequence[str],
        message: str,
        author: CommitAuthor | None = None,
    ) -> CommitInfo:
        """Create a commit object. Does not move any ref."""
        ...

    def update_ref(self, name: str, expected_sha: str, new_sha: str) -> RefInfo:
        """Compare-and-swap a ref. Raises RefConflictError if it no longer equals ``expected_sha``."""
        ...

    def close(self) -> None:
        """Release underlying resources."""
        ...


StoreFactory = Callable[[Credential, "Optional[CancelScope]"], ObjectStore]
"""Builds an ObjectStore bound to one credential and one push's cancel scope.

Stores that make blocking calls should stop retrying and sleeping once the
scope is cancelled or expired. Stores without network calls may ignore it.
"""


def qualify_ref(name: str) -> str:
    """Normalize a branch name to ``heads/<branch>`` form.

    Accepts ``main``, ``heads/main`` and ``refs/heads/main``. Other
    qualified refs (``tags/v1``) pass through without the ``refs/`` prefix.
    """
    name = name.strip()
    if name.startswith("refs/"):
        name = name[len("refs/"):]
    if name.startswith(("heads/", "tags/")):
        return name
    return f"heads/{name}"
