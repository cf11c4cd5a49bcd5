"""Pydantic models for atomic-commit."""

from atomic_commit.models.config import PushConfig
from atomic_commit.models.objects import (
    BlobRef,
    CommitAuthor,
    CommitInfo,
    ComposedTree,
    EntryType,
    FileMode,
    RefInfo,
    TreeEntry,
    TreeSnapshot,
)
from atomic_commit.models.push import PushRequest, PushResult, PushState

__all__ = [
    "PushConfig",
    "BlobRef",
    "CommitAuthor",
    "CommitInfo",
    "ComposedTree",
    "EntryType",
    "FileMode",
    "RefInfo",
    "TreeEntry",
    "TreeSnapshot",
    "PushRequest",
    "PushResult",
    "PushState",
]
