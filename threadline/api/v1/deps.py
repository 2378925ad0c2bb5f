"""
FastAPI dependencies — database session, request context and auth guards.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from urllib.parse import unquote

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from threadline.core.config import settings
from threadline.core.context import Identity, RequestContext
from threadline.core.exceptions import Forbidden, Unauthorized
from threadline.db.session import async_session_factory
from threadline.schemas.user import ClientMeta
from threadline.services.sessions import resolve_token

# auto_error=False so a missing header falls through to the cookie
bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Token extraction ────────────────────────────────────────────────
def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Priority: Authorization header > session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials.strip()

    cookie = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if cookie:
        return unquote(cookie).strip()
    return None


def client_meta(request: Request, supplied: ClientMeta | None = None) -> ClientMeta:
    """Explicit values from the body win over what the transport tells us."""
    ip_address = supplied.ip_address if supplied else None
    user_agent = supplied.user_agent if supplied else None
    return ClientMeta(
        ip_address=ip_address or (request.client.host if request.client else None),
        user_agent=user_agent or request.headers.get("user-agent"),
    )


# ── Request context ─────────────────────────────────────────────────
async def get_request_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> RequestContext:
    """Resolve the caller (if any). Never rejects the request by itself."""
    token = extract_token(request, credentials)
    identity: Identity | None = None
    if token:
        identity = await resolve_token(db, token)
    return RequestContext(db=db, settings=settings, identity=identity)


async def require_identity(
    ctx: RequestContext = Depends(get_request_context),
) -> RequestContext:
    """Protected operations: reject anonymous callers."""
    if ctx.identity is None:
        raise Unauthorized()
    return ctx


async def require_admin(
    ctx: RequestContext = Depends(require_identity),
) -> RequestContext:
    """Only allow admin role to proceed."""
    if not ctx.identity.is_admin:
        raise Forbidden("You must be an admin")
    return ctx
