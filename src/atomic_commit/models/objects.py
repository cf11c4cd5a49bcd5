"""Git object models for atomic-commit.

Immutable, content-addressed objects (blobs, trees, commits) and the one
mutable pointer (refs). These are data-transfer models only; the object
store owns their lifetime.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class FileMode(str, enum.Enum):
    """Tree entry modes understood by git."""

    FILE = "100644"
    EXECUTABLE = "100755"
    SYMLINK = "120000"
    DIRECTORY = "040000"
    SUBMODULE = "160000"

    def __str__(self) -> str:
        return self.value


class EntryType(str, enum.Enum):
    """Object type a tree entry points at."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"

    def __str__(self) -> str:
        return self.value


class TreeEntry(BaseModel):
    """One row of a (recursive) tree listing, keyed by full path."""

    model_config = {"frozen": True}

    path: str
    mode: FileMode = FileMode.FILE
    type: EntryType = EntryType.BLOB
    sha: str

    @property
    def is_directory(self) -> bool:
        return self.type == EntryType.TREE

    def to_wire(self) -> dict:
        return {
            "path": self.path,
            "mode": self.mode.value,
            "type": self.type.value,
            "sha": self.sha,
        }


class TreeSnapshot(BaseModel):
    """A tree as read from the store, flattened to full paths.

    ``truncated`` is set when the store could not list every entry; in
    that case the listing is a lower bound of what the tree contains.
    """

    sha: str
    entries: list[TreeEntry] = []
    truncated: bool = False

    def paths(self) -> set[str]:
        return {e.path for e in self.entries}


class BlobRef(BaseModel):
    """A file path paired with the blob just written for it."""

    model_config = {"frozen": True}

    path: str
    sha: str
    mode: FileMode = FileMode.FILE

    def to_entry(self) -> TreeEntry:
        return TreeEntry(path=self.path, mode=self.mode, type=EntryType.BLOB, sha=self.sha)


class ComposedTree(BaseModel):
    """Result of merging new blobs over a base tree.

    Attributes:
        base_tree: Hash of the tree the merge started from (None for a root tree).
        entries: The full merged listing, sorted by path.
        changed: The entries that differ from the base tree, sorted by path.
            Stores that accept ``base_tree`` only need these.
    """

    base_tree: Optional[str] = None
    entries: list[TreeEntry] = []
    changed: list[TreeEntry] = []

    def as_mapping(self) -> dict[str, str]:
        """Path -> object hash for every entry."""
        return {e.path: e.sha for e in self.entries}


class CommitAuthor(BaseModel):
    """Author/committer identity for a commit."""

    name: str
    email: str
    date: Optional[datetime] = None


class CommitInfo(BaseModel):
    """A commit as read from (or written to) the store."""

    sha: str
    tree_sha: str
    parent_shas: list[str] = []
    message: str = ""
    author: Optional[CommitAuthor] = None

    def __str__(self) -> str:
        msg = self.message.splitlines()[0] if self.message else ""
        if len(msg) > 60:
            msg = msg[:57] + "..."
        return f"{self.sha[:8]} {msg}"


class RefInfo(BaseModel):
    """A named pointer to a commit (e.g., ``heads/main``)."""

    name: str
    commit_sha: str
