"""Push pipeline steps: paths, blobs, tree, commit, ref."""

from atomic_commit.engine.blobs import BlobWriter
from atomic_commit.engine.cancel import CancelScope
from atomic_commit.engine.commit import assemble_commit
from atomic_commit.engine.refs import update_ref
from atomic_commit.engine.tree import compose_tree, find_path_conflicts

__all__ = [
    "BlobWriter",
    "CancelScope",
    "assemble_commit",
    "compose_tree",
    "find_path_conflicts",
    "update_ref",
]
