"""Ref update: the single compare-and-swap that publishes a push."""

from __future__ import annotations

import logging

from atomic_commit.exceptions import AtomicCommitError, RefConflictError
from atomic_commit.models.objects import RefInfo
from atomic_commit.remote.protocols import ObjectStore

logger = logging.getLogger(__name__)


def update_ref(store: ObjectStore, name: str, expected_sha: str, new_sha: str) -> RefInfo:
    """Move ``name`` from ``expected_sha`` to ``new_sha`` or raise RefConflictError.

    A conflict is never resolved by rebasing or by inspecting where the
    ref went: the caller decides whether to push again. Commit ids are
    deterministic, so a concurrent push of identical files may already
    have moved the ref to ``new_sha``; that push won and this one lost.
    """
    try:
        return store.update_ref(name, expected_sha, new_sha)
    except RefConflictError as conflict:
        if conflict.actual_hash is None:
            try:
                conflict.actual_hash = store.read_ref(name).commit_sha
            except AtomicCommitError:
                logger.debug("Could not re-read %s after a rejected update", name)
        raise
