"""
Session manager — issues, resolves, refreshes and revokes opaque bearer tokens.

Knows about models, the database and password hashing, but not about HTTP.
Every mutation is a single conditional UPDATE so ownership and state are
checked by the same statement that changes the row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from threadline.core.config import settings
from threadline.core.context import Identity
from threadline.core.exceptions import InvalidCredentials, NotFound, UsernameTaken, ValidationError
from threadline.core.security import (burn_password_check, generate_session_token,
                                      get_password_hash, is_well_formed_token,
                                      verify_password)
from threadline.db.base import utcnow
from threadline.models.session import UserSession
from threadline.models.user import Role, User
from threadline.schemas.user import ClientMeta, RegisterRequest

logger = logging.getLogger(__name__)


def _new_expiry() -> datetime:
    return utcnow() + timedelta(days=settings.SESSION_EXPIRE_DAYS)


def _valid_session_clauses(user_id: int) -> tuple:
    return (
        UserSession.user_id == user_id,
        UserSession.is_active.is_(True),
        UserSession.expires_at > utcnow(),
    )


# ── Issuing ─────────────────────────────────────────────────────────
async def issue_session(
    db: AsyncSession,
    user: User,
    client: ClientMeta | None = None,
) -> UserSession:
    """Create a fresh session row for ``user`` and return it (token included)."""
    session = UserSession(
        user=user,
        token=generate_session_token(),
        expires_at=_new_expiry(),
        is_active=True,
        ip_address=client.ip_address if client else None,
        user_agent=client.user_agent if client else None,
    )
    db.add(session)
    await db.commit()
    return session


async def login(
    db: AsyncSession,
    username: str,
    password: str,
    client: ClientMeta | None = None,
) -> tuple[User, UserSession]:
    """Verify credentials and open a new session.

    Unknown usernames and wrong passwords raise the same error, after the
    same amount of hashing work.
    """
    result = await db.execute(select(User).where(User.username == username.strip()))
    user = result.scalar_one_or_none()

    if user is None:
        burn_password_check(password)
        logger.info("Failed login for unknown username %r", username)
        raise InvalidCredentials()
    if not verify_password(password, user.hashed_password):
        logger.info("Failed login for user %d", user.id)
        raise InvalidCredentials()

    session = await issue_session(db, user, client)
    logger.info("User %d logged in (session %d)", user.id, session.id)
    return user, session


async def register(
    db: AsyncSession,
    data: RegisterRequest,
    client: ClientMeta | None = None,
) -> tuple[User, UserSession]:
    """Create an account and log it in straight away."""
    if data.role == Role.ADMIN and not settings.ALLOW_ADMIN_SIGNUP:
        raise ValidationError("role", "Self-registration as admin is not allowed")

    existing = await db.execute(select(User.id).where(User.username == data.username))
    if existing.scalar_one_or_none() is not None:
        raise UsernameTaken()

    user = User(
        username=data.username,
        name=data.name,
        hashed_password=get_password_hash(data.password),
        role=data.role,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration
        await db.rollback()
        raise UsernameTaken()

    logger.info("Registered user %d (%s)", user.id, user.username)
    session = await issue_session(db, user, client)
    return user, session


# ── Resolving ───────────────────────────────────────────────────────
async def resolve_token(db: AsyncSession, token: str | None) -> Identity | None:
    """Map a bearer token to an identity. Never raises."""
    if not is_well_formed_token(token):
        return None

    try:
        result = await db.execute(
            select(UserSession).where(
                UserSession.token == token,
                UserSession.is_active.is_(True),
                UserSession.expires_at > utcnow(),
            )
        )
        session = result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Session lookup failed")
        await db.rollback()
        return None

    if session is None:
        return None
    return Identity(user=session.user, session=session)


# ── Lifecycle ───────────────────────────────────────────────────────
async def refresh_session(db: AsyncSession, session_id: int, user_id: int) -> datetime:
    """Push the expiry of one of the caller's valid sessions forward."""
    new_expiry = _new_expiry()
    result = await db.execute(
        update(UserSession)
        .where(UserSession.id == session_id, *_valid_session_clauses(user_id))
        .values(expires_at=new_expiry, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound("Session not found or expired")

    await db.commit()
    logger.info("Session %d refreshed for user %d", session_id, user_id)
    return new_expiry


async def logout(
    db: AsyncSession,
    session_id: int | None,
    user_id: int,
    logout_all: bool = False,
) -> None:
    """Deactivate one session, or all of them. Idempotent."""
    stmt = update(UserSession).where(
        UserSession.user_id == user_id,
        UserSession.is_active.is_(True),
    )
    if not logout_all:
        stmt = stmt.where(UserSession.id == session_id)

    result = await db.execute(
        stmt.values(is_active=False, updated_at=utcnow()).execution_options(
            synchronize_session=False
        )
    )
    await db.commit()
    logger.info(
        "User %d logged out %s (%d session(s) closed)",
        user_id,
        "everywhere" if logout_all else f"session {session_id}",
        result.rowcount,
    )


async def list_sessions(db: AsyncSession, user_id: int) -> list[UserSession]:
    result = await db.execute(
        select(UserSession)
        .where(*_valid_session_clauses(user_id))
        .order_by(UserSession.created_at.desc(), UserSession.id.desc())
    )
    return list(result.scalars().all())


async def get_session(db: AsyncSession, session_id: int, user_id: int) -> UserSession:
    result = await db.execute(
        select(UserSession).where(UserSession.id == session_id, *_valid_session_clauses(user_id))
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise NotFound("Session not found or expired")
    return session
