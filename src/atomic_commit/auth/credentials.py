"""Credential access.

The session provider is external: it knows how the user connected and
hands out a bearer token scoped to the target store. CredentialAccessor
turns "no token" and "stale token" into typed errors and never caches a
credential past the call that asked for it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from atomic_commit.exceptions import CredentialExpiredError, NotConnectedError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENV_VARS: tuple[str, ...] = ("ATOMIC_COMMIT_TOKEN", "GITHUB_TOKEN")


@dataclass(frozen=True)
class Credential:
    """An opaque bearer credential.

    The token is excluded from repr so credentials can be logged safely.
    """

    token: str = field(repr=False)
    expires_at: Optional[datetime] = None

    def is_valid(self, now: datetime | None = None) -> bool:
        """True if the token is non-empty and not past ``expires_at``."""
        if not self.token:
            return False
        if self.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now < expires_at


@runtime_checkable
class SessionProvider(Protocol):
    """Protocol for the external session store."""

    def current_credential(self) -> Credential | None:
        """Return the session's credential, or None when not connected."""
        ...

    def refresh(self) -> Credential | None:
        """Ask the session for a fresh credential. None if it cannot."""
        ...


class StaticSessionProvider:
    """Session provider holding a fixed token (scripts, tests)."""

    def __init__(self, token: str | None, expires_at: datetime | None = None) -> None:
        self._credential = Credential(token, expires_at) if token else None

    def current_credential(self) -> Credential | None:
        return self._credential

    def refresh(self) -> Credential | None:
        return None


class EnvSessionProvider:
    """Session provider reading a token from the environment on every call.

    Checks each variable in ``env_vars`` in order; the first non-empty one wins.
    """

    def __init__(
        self,
        env_vars: tuple[str, ...] = DEFAULT_TOKEN_ENV_VARS,
        environ: dict[str, str] | None = None,
    ) -> None:
        self._env_vars = env_vars
        self._environ = environ

    def current_credential(self) -> Credential | None:
        env = os.environ if self._environ is None else self._environ
        for name in self._env_vars:
            token = env.get(name, "").strip()
            if token:
                return Credential(token)
        return None

    def refresh(self) -> Credential | None:
        return self.current_credential()


class CredentialAccessor:
    """Resolve a valid credential or fail fast.

    A credential that is present but no longer valid gets exactly one
    session refresh; if that does not produce a valid credential the
    caller must reconnect.
    """

    def __init__(self, provider: SessionProvider) -> None:
        self._provider = provider

    def get_credential(self) -> Credential:
        """Return a valid credential.

        Raises:
            NotConnectedError: If the session has no credential at all.
            CredentialExpiredError: If the credential is stale and the
                session cannot refresh it.
        """
        credential = self._provider.current_credential()
        if credential is None:
            raise NotConnectedError()
        if credential.is_valid():
            return credential

        logger.info("Credential expired; asking session for a refresh")
        refreshed = self._provider.refresh()
        if refreshed is None or not refreshed.is_valid():
            raise CredentialExpiredError()
        return refreshed

    def is_connected(self) -> bool:
        """True if a credential is available (it may still be stale)."""
        return self._provider.current_credential() is not None
