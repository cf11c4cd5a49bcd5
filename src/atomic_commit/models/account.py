"""Account-side models: the connected user and their repositories."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class UserInfo(BaseModel):
    """The authenticated account."""

    login: str
    id: int
    name: Optional[str] = None
    email: Optional[str] = None


class RepositoryInfo(BaseModel):
    """A repository the account can push to."""

    id: int
    name: str
    full_name: str
    private: bool = False
    default_branch: str = "main"
    url: str
