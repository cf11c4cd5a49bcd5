"""atomic-commit: publish many files as one commit, or not at all.

Builds blobs, a tree and a commit in a content-addressable store, then
moves the branch with a single compare-and-swap. A failed push leaves
the branch exactly where it was.
"""

__version__ = "0.1.0"

# Entry points
from atomic_commit.orchestrator import PushOrchestrator, push

# Credentials
from atomic_commit.auth import (
    Credential,
    CredentialAccessor,
    EnvSessionProvider,
    SessionProvider,
    StaticSessionProvider,
)

# Models
from atomic_commit.models import (
    BlobRef,
    CommitAuthor,
    CommitInfo,
    ComposedTree,
    EntryType,
    FileMode,
    PushConfig,
    PushRequest,
    PushResult,
    PushState,
    RefInfo,
    TreeEntry,
    TreeSnapshot,
)
from atomic_commit.models.account import RepositoryInfo, UserInfo

# Engine
from atomic_commit.engine import BlobWriter, CancelScope, assemble_commit, compose_tree, update_ref

# Stores
from atomic_commit.remote import (
    GitHubAccount,
    GitHubClient,
    GitHubObjectStore,
    InMemoryObjectStore,
    ObjectStore,
    StoreFactory,
)

# Exceptions
from atomic_commit.exceptions import (
    AtomicCommitError,
    CredentialError,
    CredentialExpiredError,
    InvalidPathError,
    NetworkError,
    NotConnectedError,
    ObjectNotFoundError,
    PartialBlobFailureError,
    PathConflictError,
    PermissionDeniedError,
    PushCancelledError,
    PushConfigError,
    RateLimitError,
    RefConflictError,
    RefNotFoundError,
    ResponseError,
)

__all__ = [
    "__version__",
    # Entry points
    "PushOrchestrator",
    "push",
    # Credentials
    "Credential",
    "CredentialAccessor",
    "EnvSessionProvider",
    "SessionProvider",
    "StaticSessionProvider",
    # Models
    "BlobRef",
    "CommitAuthor",
    "CommitInfo",
    "ComposedTree",
    "EntryType",
    "FileMode",
    "PushConfig",
    "PushRequest",
    "PushResult",
    "PushState",
    "RefInfo",
    "RepositoryInfo",
    "TreeEntry",
    "TreeSnapshot",
    "UserInfo",
    # Engine
    "BlobWriter",
    "CancelScope",
    "assemble_commit",
    "compose_tree",
    "update_ref",
    # Stores
    "GitHubAccount",
    "GitHubClient",
    "GitHubObjectStore",
    "InMemoryObjectStore",
    "ObjectStore",
    "StoreFactory",
    # Exceptions
    "AtomicCommitError",
    "CredentialError",
    "CredentialExpiredError",
    "InvalidPathError",
    "NetworkError",
    "NotConnectedError",
    "ObjectNotFoundError",
    "PartialBlobFailureError",
    "PathConflictError",
    "PermissionDeniedError",
    "PushCancelledError",
    "PushConfigError",
    "RateLimitError",
    "RefConflictError",
    "RefNotFoundError",
    "ResponseError",
]
