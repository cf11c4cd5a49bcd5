"""Cancellation scope for a single push.

Combines a caller-owned threading.Event with an optional deadline. Every
step of a push checks the scope between network calls; the blob phase
polls it while waiting on its workers.
"""

from __future__ import annotations

import threading
import time

from atomic_commit.exceptions import PushCancelledError


class CancelScope:
    """Cancellation token plus deadline.

    Usage::

        scope = CancelScope(timeout=30.0)
        ...
        scope.check()          # raises PushCancelledError once cancelled/expired
        scope.cancel()         # e.g. from another thread
    """

    def __init__(
        self,
        timeout: float | None = None,
        event: threading.Event | None = None,
    ) -> None:
        self._event = event if event is not None else threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def cancel(self) -> None:
        self._event.set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """Raise PushCancelledError if cancelled or past the deadline."""
        if self._event.is_set():
            raise PushCancelledError("Push cancelled by caller")
        if self.expired:
            raise PushCancelledError("Push timed out")

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early on cancel. Then check()."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            self._event.wait(seconds)
        self.check()
