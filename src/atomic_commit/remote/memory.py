"""In-memory object store.

Implements the ObjectStore protocol with git-compatible object ids and a
true compare-and-swap on refs. Useful for dry runs, local development
and as the backing model for tests.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Callable

from atomic_commit.engine.hashing import blob_id, commit_id, format_signature, tree_id
from atomic_commit.engine.paths import parent_dirs
from atomic_commit.exceptions import (
    ObjectNotFoundError,
    PathConflictError,
    RefConflictError,
    RefNotFoundError,
)
from atomic_commit.models.objects import (
    BlobRef,
    CommitAuthor,
    CommitInfo,
    EntryType,
    FileMode,
    RefInfo,
    TreeEntry,
    TreeSnapshot,
)
from atomic_commit.remote.protocols import qualify_ref

# (mode, type, sha) of one tree child or flattened leaf
_Slot = tuple[FileMode, EntryType, str]


class InMemoryObjectStore:
    """Thread-safe in-memory object store.

    ``calls`` counts every protocol call by method name.
    """

    web_url: str | None = None

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] | None = None,
        default_author: CommitAuthor | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._blobs: dict[str, str] = {}
        self._trees: dict[str, dict[str, _Slot]] = {}
        self._commits: dict[str, CommitInfo] = {}
        self._refs: dict[str, str] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._author = default_author or CommitAuthor(
            name="atomic-commit", email="atomic-commit@localhost"
        )
        self.calls: Counter[str] = Counter()
        self._write_tree({})  # the empty tree always exists

    # ------------------------------------------------------------------
    # Seeding and inspection
    # ------------------------------------------------------------------

    def seed(self, ref: str, files: Mapping[str, str], message: str = "Initial commit") -> CommitInfo:
        """Commit ``files`` on top of ``ref`` (or as a root commit) and force the ref there."""
        blobs = [BlobRef(path=path, sha=self.create_blob(content)) for path, content in files.items()]
        with self._lock:
            parent = self._refs.get(qualify_ref(ref))
        base_tree = self._commits[parent].tree_sha if parent else None
        tree = self.create_tree([b.to_entry() for b in blobs], base_tree=base_tree)
        commit = self.create_commit(tree, [parent] if parent else [], message)
        self.set_ref(ref, commit.sha)
        return commit

    def set_ref(self, name: str, sha: str) -> None:
        """Force a ref to ``sha`` with no precondition."""
        with self._lock:
            self._refs[qualify_ref(name)] = sha

    def has_object(self, sha: str) -> bool:
        with self._lock:
            return sha in self._blobs or sha in self._trees or sha in self._commits

    def blob_content(self, sha: str) -> str:
        with self._lock:
            if sha not in self._blobs:
                raise ObjectNotFoundError("blob", sha)
            return self._blobs[sha]

    def files_at(self, ref: str) -> dict[str, str]:
        """Path -> content of every file reachable from ``ref``."""
        commit = self.read_commit(self.read_ref(ref).commit_sha)
        with self._lock:
            leaves = self._flatten(commit.tree_sha)
            return {
                path: self._blobs[sha]
                for path, (_, kind, sha) in leaves.items()
                if kind == EntryType.BLOB
            }

    # ------------------------------------------------------------------
    # ObjectStore protocol
    # ------------------------------------------------------------------

    def read_ref(self, name: str) -> RefInfo:
        ref = qualify_ref(name)
        with self._lock:
            self.calls["read_ref"] += 1
            sha = self._refs.get(ref)
        if sha is None:
            raise RefNotFoundError(name)
        return RefInfo(name=ref, commit_sha=sha)

    def read_commit(self, sha: str) -> CommitInfo:
        with self._lock:
            self.calls["read_commit"] += 1
            commit = self._commits.get(sha)
        if commit is None:
            raise ObjectNotFoundError("commit", sha)
        return commit

    def read_tree(self, sha: str) -> TreeSnapshot:
        with self._lock:
            self.calls["read_tree"] += 1
            if sha not in self._trees:
                raise ObjectNotFoundError("tree", sha)
            entries = list(self._walk(sha, ""))
        return TreeSnapshot(sha=sha, entries=entries)

    def create_blob(self, content: str) -> str:
        sha = blob_id(content)
        with self._lock:
            self.calls["create_blob"] += 1
            self._blobs[sha] = content
        return sha

    def create_tree(self, entries: Sequence[TreeEntry], base_tree: str | None = None) -> str:
        with self._lock:
            self.calls["create_tree"] += 1
            if base_tree is not None and base_tree not in self._trees:
                raise ObjectNotFoundError("tree", base_tree)
            files = self._flatten(base_tree) if base_tree is not None else {}
            for entry in entries:
                if entry.type == EntryType.TREE:
                    self._graft(files, entry)
                    continue
                if entry.type == EntryType.BLOB and entry.sha not in self._blobs:
                    raise ObjectNotFoundError("blob", entry.sha)
                self._check_slot(files, entry.path)
                files[entry.path] = (entry.mode, entry.type, entry.sha)
            return self._write_tree(files)

    def create_commit(
        self,
        tree_sha: str,
        parent_shas: Sequence[str],
        message: str,
        author: CommitAuthor | None = None,
    ) -> CommitInfo:
        author = author or self._author
        if author.date is None:
            author = author.model_copy(update={"date": self._clock()})
        signature = format_signature(author.name, author.email, author.date)
        sha = commit_id(tree_sha, parent_shas, signature, signature, message)
        with self._lock:
            self.calls["create_commit"] += 1
            if tree_sha not in self._trees:
                raise ObjectNotFoundError("tree", tree_sha)
            for parent in parent_shas:
                if parent not in self._commits:
                    raise ObjectNotFoundError("commit", parent)
            commit = CommitInfo(
                sha=sha,
                tree_sha=tree_sha,
                parent_shas=list(parent_shas),
                message=message,
                author=author,
            )
            self._commits.setdefault(sha, commit)
            return self._commits[sha]

    def update_ref(self, name: str, expected_sha: str, new_sha: str) -> RefInfo:
        ref = qualify_ref(name)
        with self._lock:
            self.calls["update_ref"] += 1
            current = self._refs.get(ref)
            if current is None:
                raise RefNotFoundError(name)
            if current != expected_sha:
                raise RefConflictError(name, expected_sha, current)
            if new_sha not in self._commits:
                raise ObjectNotFoundError("commit", new_sha)
            self._refs[ref] = new_sha
        return RefInfo(name=ref, commit_sha=new_sha)

    def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _walk(self, sha: str, prefix: str):
        for name, (mode, kind, child) in sorted(self._trees[sha].items()):
            path = f"{prefix}{name}"
            yield TreeEntry(path=path, mode=mode, type=kind, sha=child)
            if kind == EntryType.TREE:
                yield from self._walk(child, path + "/")

    def _flatten(self, sha: str, prefix: str = "") -> dict[str, _Slot]:
        """Leaf entries (everything but subtrees) under a tree, by full path."""
        leaves: dict[str, _Slot] = {}
        for name, (mode, kind, child) in self._trees[sha].items():
            path = f"{prefix}{name}"
            if kind == EntryType.TREE:
                leaves.update(self._flatten(child, path + "/"))
            else:
                leaves[path] = (mode, kind, child)
        return leaves

    def _graft(self, files: dict[str, _Slot], entry: TreeEntry) -> None:
        if entry.sha not in self._trees:
            raise ObjectNotFoundError("tree", entry.sha)
        if entry.path in files:
            raise PathConflictError(entry.path, "path is an existing file")
        for parent in parent_dirs(entry.path):
            if parent in files:
                raise PathConflictError(entry.path, f"parent '{parent}' is an existing file")
        under = entry.path + "/"
        for path in [p for p in files if p.startswith(under)]:
            del files[path]
        files.update(self._flatten(entry.sha, under))

    @staticmethod
    def _check_slot(files: dict[str, _Slot], path: str) -> None:
        under = path + "/"
        if any(p.startswith(under) for p in files):
            raise PathConflictError(path)
        for parent in parent_dirs(path):
            if parent in files:
                raise PathConflictError(path, f"parent '{parent}' is an existing file")

    def _write_tree(self, files: Mapping[str, _Slot]) -> str:
        children: dict[str, _Slot] = {}
        subdirs: dict[str, dict[str, _Slot]] = {}
        for path, slot in files.items():
            head, sep, rest = path.partition("/")
            if sep:
                subdirs.setdefault(head, {})[rest] = slot
            else:
                children[head] = slot
        for name, sub in subdirs.items():
            children[name] = (FileMode.DIRECTORY, EntryType.TREE, self._write_tree(sub))

        sha = tree_id((mode.value, name, child) for name, (mode, _, child) in children.items())
        self._trees.setdefault(sha, children)
        return sha
