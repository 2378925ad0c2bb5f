"""
Per-request context handed to every handler.

Built by exactly one dependency (``threadline.api.v1.deps.get_request_context``);
services never look at headers or cookies themselves.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from threadline.core.config import Settings
from threadline.models.session import UserSession
from threadline.models.user import User


@dataclass(frozen=True)
class Identity:
    """An authenticated caller: the user plus the session that vouched for them."""

    user: User
    session: UserSession

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin


@dataclass(frozen=True)
class RequestContext:
    db: AsyncSession
    settings: Settings
    identity: Identity | None = None

    @property
    def user(self) -> User | None:
        return self.identity.user if self.identity else None

    @property
    def session(self) -> UserSession | None:
        return self.identity.session if self.identity else None
