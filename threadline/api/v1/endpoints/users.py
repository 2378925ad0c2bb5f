"""
User directory, profiles and role management.
"""

from __future__ import annotations

import logging
import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select

from threadline.api.v1.deps import require_admin, require_identity
from threadline.core.context import RequestContext
from threadline.core.exceptions import NotFound
from threadline.db.base import utcnow
from threadline.models.user import User
from threadline.schemas.user import ProfileUpdate, RoleUpdate, UserPage, UserRead

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


async def _get_user(ctx: RequestContext, user_id: int) -> User:
    result = await ctx.db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


# ── Directory ───────────────────────────────────────────────────────
@router.get("", response_model=UserPage)
async def list_users(
    page: int = Query(default=1, ge=1),
    search: str | None = Query(default=None, max_length=100),
    ctx: RequestContext = Depends(require_identity),
) -> UserPage:
    """Paged directory sorted by display name. Search matches name or username."""
    limit = ctx.settings.USERS_PAGE_SIZE
    clauses = []
    if search:
        safe = search.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")
        pattern = f"%{safe}%"
        clauses.append(
            or_(
                User.name.ilike(pattern, escape="\\"),
                User.username.ilike(pattern, escape="\\"),
            )
        )

    total = await ctx.db.scalar(select(func.count(User.id)).where(*clauses)) or 0
    result = await ctx.db.execute(
        select(User)
        .where(*clauses)
        .order_by(User.name.asc(), User.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return UserPage(
        users=[UserRead.model_validate(u) for u in result.scalars().all()],
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit),
    )


# ── Own profile ─────────────────────────────────────────────────────
@router.patch("/me", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    ctx: RequestContext = Depends(require_identity),
) -> User:
    """Change display name and/or avatar. Role is never touched here."""
    user = ctx.user
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, value)
    if changes:
        user.updated_at = utcnow()
        await ctx.db.commit()
        logger.info("User %d updated profile fields %s", user.id, sorted(changes))
    return user


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> User:
    return await _get_user(ctx, user_id)


# ── Role management (admin-only) ────────────────────────────────────
@router.put("/{user_id}/role", response_model=UserRead)
async def grant_role(
    user_id: int,
    body: RoleUpdate,
    ctx: RequestContext = Depends(require_admin),
) -> User:
    """The only way to change a user's role after registration."""
    user = await _get_user(ctx, user_id)
    previous = user.role
    if previous != body.role:
        user.role = body.role
        user.updated_at = utcnow()
        await ctx.db.commit()
    logger.info(
        "Admin %d set role of user %d: %s -> %s",
        ctx.user.id,
        user.id,
        previous.value,
        body.role.value,
    )
    return user
