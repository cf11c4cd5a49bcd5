"""Tree composition: merge freshly written blobs over a base tree.

compose_tree() is pure and order-independent. It never talks to the
store; the orchestrator decides what to send based on its result.
"""

from __future__ import annotations

from collections.abc import Iterable

from atomic_commit.engine.paths import check_prefix_conflicts, parent_dirs
from atomic_commit.exceptions import PathConflictError
from atomic_commit.models.objects import (
    BlobRef,
    ComposedTree,
    EntryType,
    FileMode,
    TreeEntry,
)


def find_path_conflicts(base_entries: Iterable[TreeEntry], paths: Iterable[str]) -> None:
    """Check new file paths against a base tree listing.

    A new file may not replace a directory or a submodule, and none of its
    parent directories may already exist as a file.

    Raises:
        PathConflictError: For the first offending path (in sorted order).
    """
    base = {e.path: e for e in base_entries}
    for path in sorted(set(paths)):
        existing = base.get(path)
        if existing is not None:
            if existing.type == EntryType.TREE:
                raise PathConflictError(path)
            if existing.type == EntryType.COMMIT:
                raise PathConflictError(path, "path is a submodule")
        for parent in parent_dirs(path):
            above = base.get(parent)
            if above is not None and above.type != EntryType.TREE:
                raise PathConflictError(
                    path, f"parent '{parent}' is an existing file"
                )


def _merged_mode(existing: TreeEntry | None, blob: BlobRef) -> FileMode:
    # Rewriting an executable keeps its executable bit.
    if existing is not None and existing.mode == FileMode.EXECUTABLE and blob.mode == FileMode.FILE:
        return FileMode.EXECUTABLE
    return blob.mode


def compose_tree(
    base_entries: Iterable[TreeEntry],
    new_blobs: Iterable[BlobRef],
    *,
    base_tree: str | None = None,
) -> ComposedTree:
    """Merge new blobs over a base tree listing, keyed by path.

    Every path in ``new_blobs`` overrides the base entry at that path; all
    other base entries pass through unchanged. Directory entries in the
    base are implied by the file paths under them, so the merged
    listing holds leaf entries only.

    Args:
        base_entries: Recursive listing of the base tree (full paths).
        new_blobs: Blobs just written, one per path.
        base_tree: Hash of the base tree, carried into the result.

    Returns:
        ComposedTree with the full merged listing and the changed subset,
        both sorted by path.

    Raises:
        PathConflictError: If a new path collides with a directory,
            submodule or file-prefix in the base, if two new paths collide
            with each other, or if one path is given two different blobs.
    """
    base_list = list(base_entries)
    new: dict[str, BlobRef] = {}
    for blob in new_blobs:
        seen = new.get(blob.path)
        if seen is not None and (seen.sha, seen.mode) != (blob.sha, blob.mode):
            raise PathConflictError(blob.path, "path given two different blobs")
        new[blob.path] = blob

    check_prefix_conflicts(new)
    find_path_conflicts(base_list, new)

    merged: dict[str, TreeEntry] = {
        e.path: e for e in base_list if e.type != EntryType.TREE
    }
    changed: list[TreeEntry] = []
    for path, blob in new.items():
        existing = merged.get(path)
        entry = TreeEntry(
            path=path,
            mode=_merged_mode(existing, blob),
            type=EntryType.BLOB,
            sha=blob.sha,
        )
        if existing != entry:
            changed.append(entry)
        merged[path] = entry

    return ComposedTree(
        base_tree=base_tree,
        entries=sorted(merged.values(), key=lambda e: e.path),
        changed=sorted(changed, key=lambda e: e.path),
    )
