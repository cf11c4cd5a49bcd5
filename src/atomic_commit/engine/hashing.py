"""Git object hashing for atomic-commit.

Computes the same object ids git does (SHA-1 over ``"<type> <size>\\0"``
followed by the serialized body). All hashing is deterministic: the same
content always produces the same id, which is what lets the store
deduplicate repeated writes.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from datetime import datetime, timezone

# Trees sort subdirectories as if their name ended in "/".
_TREE_MODES = {"40000", "040000"}


def git_object_id(object_type: str, body: bytes) -> str:
    """Compute the git object id of a raw object body.

    Args:
        object_type: "blob", "tree" or "commit".
        body: Serialized object body (without the git header).

    Returns:
        Hex digest of the SHA-1 hash.
    """
    header = f"{object_type} {len(body)}\0".encode("ascii")
    return hashlib.sha1(header + body).hexdigest()


def blob_id(content: str) -> str:
    """Object id of a text blob, encoded as UTF-8."""
    return git_object_id("blob", content.encode("utf-8"))


def _tree_sort_key(entry: tuple[str, str, str]) -> bytes:
    mode, name, _ = entry
    key = name + "/" if mode in _TREE_MODES else name
    return key.encode("utf-8")


def serialize_tree(entries: Iterable[tuple[str, str, str]]) -> bytes:
    """Serialize direct tree children in git's canonical order.

    Args:
        entries: ``(mode, name, sha)`` triples. ``name`` is a single path
            segment; input order is irrelevant.
    """
    body = bytearray()
    for mode, name, sha in sorted(entries, key=_tree_sort_key):
        # git writes directory modes without the leading zero
        body += f"{mode.lstrip('0')} {name}".encode("utf-8")
        body += b"\0"
        body += bytes.fromhex(sha)
    return bytes(body)


def tree_id(entries: Iterable[tuple[str, str, str]]) -> str:
    """Object id of a tree built from ``(mode, name, sha)`` children."""
    return git_object_id("tree", serialize_tree(entries))


def format_signature(name: str, email: str, when: datetime) -> str:
    """Format an author/committer line value: ``Name <email> 1700000000 +0000``."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    offset = when.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "-" if minutes < 0 else "+"
    minutes = abs(minutes)
    return f"{name} <{email}> {int(when.timestamp())} {sign}{minutes // 60:02d}{minutes % 60:02d}"


def serialize_commit(
    tree_sha: str,
    parent_shas: Iterable[str],
    author: str,
    committer: str,
    message: str,
) -> bytes:
    """Serialize a commit body.

    Args:
        tree_sha: Hash of the root tree.
        parent_shas: Parent commit hashes, in order.
        author: Formatted author signature (see format_signature).
        committer: Formatted committer signature.
        message: Commit message.
    """
    lines = [f"tree {tree_sha}"]
    lines.extend(f"parent {p}" for p in parent_shas)
    lines.append(f"author {author}")
    lines.append(f"committer {committer}")
    return ("\n".join(lines) + "\n\n" + message).encode("utf-8")


def commit_id(
    tree_sha: str,
    parent_shas: Iterable[str],
    author: str,
    committer: str,
    message: str,
) -> str:
    """Object id of a commit. A pure function of its tree, parents, signatures and message."""
    return git_object_id(
        "commit", serialize_commit(tree_sha, parent_shas, author, committer, message)
    )
