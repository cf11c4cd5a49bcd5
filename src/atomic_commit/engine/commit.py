"""Commit assembly: one new commit over the composed tree, single parent."""

from __future__ import annotations

import logging

from atomic_commit.models.objects import CommitAuthor, CommitInfo
from atomic_commit.remote.protocols import ObjectStore

logger = logging.getLogger(__name__)


def assemble_commit(
    store: ObjectStore,
    tree_sha: str,
    parent_sha: str,
    message: str,
    author: CommitAuthor | None = None,
) -> CommitInfo:
    """Create a linear-history commit of ``tree_sha`` on top of ``parent_sha``.

    The commit is not visible until a ref points at it. Retrying after a
    transport failure is safe: at worst it leaves an unreachable twin.
    """
    if not parent_sha:
        raise ValueError("assemble_commit requires a parent commit")
    commit = store.create_commit(tree_sha, [parent_sha], message, author)
    if commit.parent_shas != [parent_sha]:
        logger.warning(
            "Store reported parents %s for commit %s, expected [%s]",
            commit.parent_shas, commit.sha[:8], parent_sha[:8],
        )
    logger.debug("Created commit %s (tree %s)", commit.sha[:8], tree_sha[:8])
    return commit
