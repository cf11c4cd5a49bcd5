"""Object store implementations.

Provides the ObjectStore protocol, a GitHub Git Data API store over
httpx, and an in-memory store with git-compatible hashing.
"""

from atomic_commit.remote.account import GitHubAccount
from atomic_commit.remote.github import GitHubClient, GitHubObjectStore
from atomic_commit.remote.memory import InMemoryObjectStore
from atomic_commit.remote.protocols import ObjectStore, StoreFactory, qualify_ref

__all__ = [
    "GitHubAccount",
    "GitHubClient",
    "GitHubObjectStore",
    "InMemoryObjectStore",
    "ObjectStore",
    "StoreFactory",
    "qualify_ref",
]
