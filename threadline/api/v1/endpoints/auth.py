"""
Auth endpoints — register, login, session refresh/logout and session listing.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from threadline.api.v1.deps import client_meta, get_db, require_identity
from threadline.core.config import settings
from threadline.core.context import RequestContext
from threadline.core.limiter import limiter
from threadline.models.session import UserSession
from threadline.models.user import User
from threadline.schemas.session import (AuthResponse, LogoutRequest,
                                        RefreshRequest, RefreshResponse,
                                        SessionGrant, SessionSummary,
                                        SuccessResponse)
from threadline.schemas.user import (LoginRequest, RegisterRequest, UserPublic,
                                     UserRead)
from threadline.services import sessions as session_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, session: UserSession) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.token,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
        max_age=settings.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _auth_response(user: User, session: UserSession) -> AuthResponse:
    return AuthResponse(
        user=UserPublic.model_validate(user),
        session=SessionGrant.model_validate(session),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.REGISTER_RATE_LIMIT)
async def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create an account and return it with a fresh session."""
    user, session = await session_service.register(db, body, client_meta(request, body))
    _set_session_cookie(response, session)
    return _auth_response(user, session)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Authenticate with username/password. Sets the session cookie as well."""
    user, session = await session_service.login(
        db, body.username, body.password, client_meta(request, body)
    )
    _set_session_cookie(response, session)
    return _auth_response(user, session)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    body: RefreshRequest | None = None,
    ctx: RequestContext = Depends(require_identity),
) -> RefreshResponse:
    """Extend one of the caller's sessions (the current one by default)."""
    session_id = body.session_id if body and body.session_id is not None else ctx.session.id
    expires_at = await session_service.refresh_session(ctx.db, session_id, ctx.user.id)
    return RefreshResponse(session_id=session_id, expires_at=expires_at)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    response: Response,
    body: LogoutRequest | None = None,
    ctx: RequestContext = Depends(require_identity),
) -> SuccessResponse:
    """Close the current session, a named one, or every session of the caller."""
    body = body or LogoutRequest()
    session_id = body.session_id if body.session_id is not None else ctx.session.id
    await session_service.logout(ctx.db, session_id, ctx.user.id, body.logout_all)

    if body.logout_all or session_id == ctx.session.id:
        response.delete_cookie(
            settings.SESSION_COOKIE_NAME,
            path="/",
            secure=settings.COOKIE_SECURE,
            httponly=True,
            samesite="strict",
        )
    return SuccessResponse(message="Logged out")


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(
    ctx: RequestContext = Depends(require_identity),
) -> list[UserSession]:
    """Active sessions of the caller, newest first. Tokens are never included."""
    return await session_service.list_sessions(ctx.db, ctx.user.id)


@router.get("/sessions/{session_id}", response_model=SessionSummary)
async def get_session(
    session_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> UserSession:
    return await session_service.get_session(ctx.db, session_id, ctx.user.id)


@router.get("/me", response_model=UserRead)
async def read_current_user(
    ctx: RequestContext = Depends(require_identity),
) -> User:
    """Return profile of the currently authenticated user."""
    return ctx.user
