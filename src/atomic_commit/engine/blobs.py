"""Parallel blob writing.

Blobs are independent and content-addressed, so they are written
concurrently through a bounded thread pool with no ordering between
them. A round that leaves transient failures is followed by a round
over just the failed subset; every blob must land or the whole phase
fails.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from atomic_commit.engine.cancel import CancelScope
from atomic_commit.engine.hashing import blob_id
from atomic_commit.exceptions import (
    RETRYABLE_ERRORS,
    PartialBlobFailureError,
    ResponseError,
)
from atomic_commit.models.objects import BlobRef
from atomic_commit.remote.protocols import ObjectStore

logger = logging.getLogger(__name__)

# How often a waiting round wakes to observe cancellation.
_POLL_INTERVAL = 0.1


class BlobWriter:
    """Write the blobs for one push through a bounded worker pool.

    Identical contents at different paths are written once.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        max_workers: int = 4,
        retry_rounds: int = 2,
        retry_backoff: float = 0.5,
        verify_hashes: bool = False,
    ) -> None:
        self._store = store
        self._max_workers = max_workers
        self._retry_rounds = retry_rounds
        self._retry_backoff = retry_backoff
        self._verify_hashes = verify_hashes

    def write(self, files: Mapping[str, str], scope: CancelScope | None = None) -> list[BlobRef]:
        """Create a blob for every file.

        Args:
            files: Path -> text content.
            scope: Cancellation scope; checked while waiting on workers.

        Returns:
            One BlobRef per path, sorted by path.

        Raises:
            PartialBlobFailureError: If some blobs still failed after all
                retry rounds. No caller should build a tree from a subset.
            CredentialExpiredError, PermissionDeniedError, ResponseError:
                Non-retryable errors, raised at once; outstanding work is
                abandoned.
            PushCancelledError: If the scope is cancelled or expires.
        """
        scope = scope or CancelScope()
        by_content: dict[str, list[str]] = {}
        for path, content in files.items():
            by_content.setdefault(content, []).append(path)

        written: dict[str, str] = {}
        pending = list(by_content)
        failures: dict[str, BaseException] = {}

        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self._max_workers, len(pending))),
            thread_name_prefix="blob-writer",
        )
        try:
            for round_num in range(self._retry_rounds + 1):
                if round_num > 0:
                    logger.warning(
                        "Retrying %d failed blob(s), round %d of %d",
                        len(pending), round_num, self._retry_rounds,
                    )
                    scope.sleep(self._retry_backoff * round_num)
                failures = self._run_round(executor, pending, written, scope)
                if not failures:
                    break
                pending = list(failures)
        finally:
            # Stragglers are abandoned, not awaited; their blobs are inert.
            executor.shutdown(wait=False, cancel_futures=True)

        if failures:
            failed_paths = [p for content in failures for p in by_content[content]]
            causes = {p: failures[content] for content in failures for p in by_content[content]}
            raise PartialBlobFailureError(failed_paths, causes)

        refs = [
            BlobRef(path=path, sha=written[content])
            for content, paths in by_content.items()
            for path in paths
        ]
        return sorted(refs, key=lambda b: b.path)

    def _run_round(
        self,
        executor: ThreadPoolExecutor,
        contents: list[str],
        written: dict[str, str],
        scope: CancelScope,
    ) -> dict[str, BaseException]:
        """Submit one round and collect results. Returns retryable failures by content."""
        futures: dict[Future, str] = {
            executor.submit(self._store.create_blob, content): content for content in contents
        }
        failures: dict[str, BaseException] = {}
        outstanding = set(futures)
        try:
            while outstanding:
                scope.check()
                done, outstanding = wait(
                    outstanding, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED
                )
                for future in done:
                    content = futures[future]
                    exc = future.exception()
                    if exc is None:
                        written[content] = self._checked(content, future.result())
                    elif isinstance(exc, RETRYABLE_ERRORS):
                        logger.debug("Blob write failed (retryable): %s", exc)
                        failures[content] = exc
                    else:
                        raise exc
        finally:
            for future in outstanding:
                future.cancel()
        return failures

    def _checked(self, content: str, sha: str) -> str:
        if self._verify_hashes:
            expected = blob_id(content)
            if sha != expected:
                raise ResponseError(
                    f"Store returned blob id {sha[:12]} for content hashing to {expected[:12]}"
                )
        return sha
