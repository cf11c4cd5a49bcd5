"""Configuration for atomic-commit.

PushConfig holds the tunables for one object store client and the push
pipeline that drives it.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field

_ENV_PREFIX = "ATOMIC_COMMIT_"


class PushConfig(BaseModel):
    """Per-client push configuration."""

    api_base_url: str = "https://api.github.com"
    api_version: str = "2022-11-28"
    user_agent: str = "atomic-commit"
    request_timeout: float = Field(default=30.0, gt=0)  # per network call
    push_timeout: Optional[float] = Field(default=None, gt=0)  # whole push; None = no deadline
    max_workers: int = Field(default=4, ge=1)
    max_retries: int = Field(default=3, ge=1)  # attempts per call, transient errors only
    blob_retry_rounds: int = Field(default=2, ge=0)  # extra rounds over the failed subset
    blob_retry_backoff: float = Field(default=0.5, ge=0)
    excluded_paths: tuple[str, ...] = ("instructions",)
    verify_blob_hashes: bool = False

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: object) -> PushConfig:
        """Build a config from ``ATOMIC_COMMIT_*`` environment variables.

        Field names map to upper-cased variable names, e.g.
        ``ATOMIC_COMMIT_MAX_WORKERS=8``. ``excluded_paths`` is comma separated.
        Keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = env.get(_ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if name == "excluded_paths":
                values[name] = tuple(p.strip() for p in raw.split(",") if p.strip())
            elif name == "verify_blob_hashes":
                values[name] = raw.strip().lower() in ("1", "true", "yes", "on")
            else:
                values[name] = raw
        values.update(overrides)
        return cls.model_validate(values)
