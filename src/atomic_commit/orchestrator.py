"""Push orchestration.

PushOrchestrator drives one push through its states::

    IDLE -> READING_REF -> WRITING_BLOBS -> COMPOSING_TREE
         -> WRITING_COMMIT -> UPDATING_REF -> DONE

with FAILED reachable from every state. Only the final ref update is
visible to anyone else. Objects created before a failure are left in
place: they are unreachable, harmless, and collected by the store's own
garbage collection. There are no compensating deletes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Callable

from atomic_commit.auth.credentials import CredentialAccessor, EnvSessionProvider, StaticSessionProvider
from atomic_commit.engine.blobs import BlobWriter
from atomic_commit.engine.cancel import CancelScope
from atomic_commit.engine.commit import assemble_commit
from atomic_commit.engine.paths import prepare_files
from atomic_commit.engine.refs import update_ref
from atomic_commit.engine.tree import compose_tree, find_path_conflicts
from atomic_commit.exceptions import AtomicCommitError
from atomic_commit.models.config import PushConfig
from atomic_commit.models.objects import CommitAuthor
from atomic_commit.models.push import PushRequest, PushResult, PushState
from atomic_commit.remote.github import GitHubObjectStore
from atomic_commit.remote.protocols import StoreFactory

logger = logging.getLogger(__name__)

StateCallback = Callable[[PushState], None]


class PushOrchestrator:
    """Publish a set of files as one commit, atomically.

    The orchestrator holds no per-push state, so one instance may run
    several pushes concurrently; each gets its own credential lookup and
    its own store from ``store_factory``, built with that push's
    CancelScope so blocking store calls observe the deadline.

    Usage::

        orchestrator = PushOrchestrator(
            CredentialAccessor(EnvSessionProvider()),
            GitHubObjectStore.factory("octo/site"),
        )
        result = orchestrator.push(PushRequest(
            files={"index.html": "<html></html>"},
            target_ref="main",
            message="Publish site",
        ))
    """

    def __init__(
        self,
        credentials: CredentialAccessor,
        store_factory: StoreFactory,
        config: PushConfig | None = None,
        *,
        on_state: StateCallback | None = None,
    ) -> None:
        self._credentials = credentials
        self._store_factory = store_factory
        self.config = config or PushConfig()
        self._on_state = on_state

    def push(
        self,
        request: PushRequest,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> PushResult:
        """Run one push.

        Args:
            request: Files, target ref and message.
            timeout: Deadline for the whole push in seconds. Falls back to
                ``config.push_timeout``.
            cancel_event: Set it from another thread to cancel the push.

        Returns:
            PushResult naming the new commit and every path written.

        Raises:
            AtomicCommitError: Any failure, annotated with ``state``,
                ``paths_written`` (empty) and ``paths_not_written``. The
                target ref is untouched.
        """
        state = PushState.IDLE
        requested = tuple(sorted(request.files))

        def enter(next_state: PushState) -> None:
            nonlocal state
            state = next_state
            logger.debug("Push to %s: %s", request.target_ref, next_state.value)
            if self._on_state is not None:
                self._on_state(next_state)

        try:
            files, skipped = prepare_files(request.files, self.config.excluded_paths)
            scope = CancelScope(
                timeout if timeout is not None else self.config.push_timeout, cancel_event
            )
            credential = self._credentials.get_credential()
            store = self._store_factory(credential, scope)
            try:
                enter(PushState.READING_REF)
                ref = store.read_ref(request.target_ref)
                head = store.read_commit(ref.commit_sha)
                base = store.read_tree(head.tree_sha)
                if base.truncated:
                    logger.warning(
                        "Tree %s listing is truncated; path conflicts may go undetected",
                        base.sha[:8],
                    )
                # Fail before any object is written when the paths cannot fit.
                find_path_conflicts(base.entries, files)
                scope.check()

                enter(PushState.WRITING_BLOBS)
                writer = BlobWriter(
                    store,
                    max_workers=self.config.max_workers,
                    retry_rounds=self.config.blob_retry_rounds,
                    retry_backoff=self.config.blob_retry_backoff,
                    verify_hashes=self.config.verify_blob_hashes,
                )
                blobs = writer.write(files, scope)
                scope.check()

                enter(PushState.COMPOSING_TREE)
                composed = compose_tree(base.entries, blobs, base_tree=base.sha)
                if composed.changed:
                    tree_sha = store.create_tree(composed.changed, base_tree=base.sha)
                else:
                    tree_sha = base.sha
                scope.check()

                enter(PushState.WRITING_COMMIT)
                commit = assemble_commit(
                    store, tree_sha, head.sha, request.message, request.author
                )
                scope.check()

                enter(PushState.UPDATING_REF)
                update_ref(store, request.target_ref, ref.commit_sha, commit.sha)
                web_url = getattr(store, "web_url", None)
            finally:
                store.close()
        except AtomicCommitError as exc:
            exc.state = state
            exc.paths_written = ()
            exc.paths_not_written = requested
            logger.warning(
                "Push to %s failed while %s: %s", request.target_ref, state.value, exc
            )
            if self._on_state is not None:
                self._on_state(PushState.FAILED)
            raise

        enter(PushState.DONE)
        logger.info(
            "Pushed %d file(s) to %s as %s", len(files), request.target_ref, commit.sha[:8]
        )
        return PushResult(
            new_commit_hash=commit.sha,
            previous_commit_hash=ref.commit_sha,
            tree_hash=tree_sha,
            ref=ref.name,
            paths_written=sorted(files),
            paths_skipped=skipped,
            blob_hashes={b.path: b.sha for b in blobs},
            repo_url=web_url,
            commit_url=f"{web_url}/commit/{commit.sha}" if web_url else None,
        )


def push(
    files: Mapping[str, str],
    target: str,
    message: str,
    *,
    repo: str,
    token: str | None = None,
    config: PushConfig | None = None,
    author: CommitAuthor | None = None,
    timeout: float | None = None,
) -> PushResult:
    """Push ``files`` to branch ``target`` of GitHub repository ``repo`` as one commit.

    Uses ``token`` when given, otherwise ATOMIC_COMMIT_TOKEN / GITHUB_TOKEN.
    """
    provider = StaticSessionProvider(token) if token is not None else EnvSessionProvider()
    config = config or PushConfig.from_env()
    orchestrator = PushOrchestrator(
        CredentialAccessor(provider),
        GitHubObjectStore.factory(repo, config),
        config,
    )
    request = PushRequest(files=dict(files), target_ref=target, message=message, author=author)
    return orchestrator.push(request, timeout=timeout)
