"""Credential access for the object store."""

from atomic_commit.auth.credentials import (
    Credential,
    CredentialAccessor,
    EnvSessionProvider,
    SessionProvider,
    StaticSessionProvider,
)

__all__ = [
    "Credential",
    "CredentialAccessor",
    "EnvSessionProvider",
    "SessionProvider",
    "StaticSessionProvider",
]
