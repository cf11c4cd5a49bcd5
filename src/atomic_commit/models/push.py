"""Push request/result models and the push state machine states."""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, field_validator

from atomic_commit.models.objects import CommitAuthor


class PushState(str, enum.Enum):
    """States of a single push. FAILED is reachable from every other state."""

    IDLE = "idle"
    READING_REF = "reading_ref"
    WRITING_BLOBS = "writing_blobs"
    COMPOSING_TREE = "composing_tree"
    WRITING_COMMIT = "writing_commit"
    UPDATING_REF = "updating_ref"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class PushRequest(BaseModel):
    """The unit of work submitted by the caller.

    ``files`` maps repository-relative paths to full text contents.
    """

    files: dict[str, str]
    target_ref: str = "main"
    message: str
    author: Optional[CommitAuthor] = None

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("commit message cannot be empty")
        return v

    @field_validator("target_ref")
    @classmethod
    def _ref_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("target ref cannot be empty")
        return v.strip()


class PushResult(BaseModel):
    """Outcome of a successful push."""

    new_commit_hash: str
    previous_commit_hash: str
    tree_hash: str
    ref: str
    paths_written: list[str]
    paths_skipped: list[str] = []
    blob_hashes: dict[str, str] = {}
    repo_url: Optional[str] = None
    commit_url: Optional[str] = None

    def __str__(self) -> str:
        return (
            f"{self.ref} -> {self.new_commit_hash[:8]} "
            f"({len(self.paths_written)} file(s))"
        )
