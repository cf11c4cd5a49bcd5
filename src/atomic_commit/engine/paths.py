"""Path validation and request filtering.

Requested paths must already be clean, repository-relative POSIX paths.
Nothing is normalized silently: a path that would need rewriting is
rejected, so what lands in the tree is exactly what the caller named.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from atomic_commit.exceptions import InvalidPathError, PathConflictError

logger = logging.getLogger(__name__)

_FORBIDDEN_SEGMENTS = frozenset({"", ".", ".."})


def validate_path(path: str) -> str:
    """Validate a single repository-relative file path.

    Raises InvalidPathError on violation. Returns the path unchanged.
    """
    if not path:
        raise InvalidPathError(path, "path cannot be empty")
    if "\0" in path:
        raise InvalidPathError(path, "path cannot contain NUL bytes")
    if "\\" in path:
        raise InvalidPathError(path, "path must use '/' separators")
    if path.startswith("/"):
        raise InvalidPathError(path, "path must be relative (no leading '/')")
    if path.endswith("/"):
        raise InvalidPathError(path, "path cannot end with '/'")

    for segment in path.split("/"):
        if segment in _FORBIDDEN_SEGMENTS:
            raise InvalidPathError(path, "path cannot contain empty, '.' or '..' segments")
        if segment.lower() == ".git":
            raise InvalidPathError(path, "path cannot contain a '.git' segment")
    return path


def parent_dirs(path: str) -> list[str]:
    """All ancestor directories of a path, shallowest first.

    ``parent_dirs("a/b/c.txt") == ["a", "a/b"]``
    """
    parts = path.split("/")[:-1]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


def check_prefix_conflicts(paths: Iterable[str]) -> None:
    """Reject a path set where one file path is a directory of another.

    Raises PathConflictError naming the shorter (file) path.
    """
    path_set = set(paths)
    for path in sorted(path_set):
        for parent in parent_dirs(path):
            if parent in path_set:
                raise PathConflictError(
                    parent, f"requested as a file and as the directory of '{path}'"
                )


def prepare_files(
    files: Mapping[str, str],
    excluded: Iterable[str] = (),
) -> tuple[dict[str, str], list[str]]:
    """Filter excluded pseudo-files and validate the rest.

    Args:
        files: Requested path -> content mapping.
        excluded: Exact paths to drop before any object is written.

    Returns:
        Tuple of (kept path -> content, sorted skipped paths).

    Raises:
        InvalidPathError: On a malformed path, or if nothing is left to write.
        PathConflictError: If two requested paths collide as file/directory.
    """
    excluded_set = set(excluded)
    kept: dict[str, str] = {}
    skipped: list[str] = []
    for path, content in files.items():
        if path in excluded_set:
            skipped.append(path)
            continue
        if not isinstance(content, str):
            raise InvalidPathError(path, "only text content is supported")
        kept[validate_path(path)] = content

    if skipped:
        logger.debug("Skipping excluded paths: %s", ", ".join(sorted(skipped)))
    if not kept:
        raise InvalidPathError("", "no files to commit after filtering")

    check_prefix_conflicts(kept)
    return kept, sorted(skipped)
