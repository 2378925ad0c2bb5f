"""
Post endpoints — timeline, CRUD and moderation.

- Every operation requires an authenticated user.
- Edit / delete: the author or an admin.
- Restore: admins only.
- Deleted posts are filtered out of every read for non-admins.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select

from threadline.api.v1.deps import require_identity
from threadline.core.context import RequestContext
from threadline.models.content import Comment, Post
from threadline.schemas.content import (CommentRead, PostDetail, PostPage,
                                        PostRead, PostWrite)
from threadline.schemas.session import SuccessResponse
from threadline.services import moderation

router = APIRouter(prefix="/posts", tags=["posts"])


async def _page(
    ctx: RequestContext,
    page: int,
    limit: int,
    search: str | None,
    user_id: int | None,
) -> PostPage:
    posts, total, total_pages = await moderation.list_items(
        ctx.db,
        Post,
        ctx.user,
        page=page,
        limit=limit,
        search=search,
        owner_id=user_id,
    )
    return PostPage(
        posts=[PostRead.model_validate(p) for p in posts],
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
    )


@router.get("", response_model=PostPage)
async def list_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    search: str | None = Query(default=None, max_length=200),
    user_id: int | None = None,
    ctx: RequestContext = Depends(require_identity),
) -> PostPage:
    """Newest first. Search matches the body or the author's username."""
    return await _page(ctx, page, limit, search, user_id)


@router.post("", response_model=PostRead, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostWrite,
    ctx: RequestContext = Depends(require_identity),
) -> Post:
    return await moderation.create_item(ctx.db, Post, ctx.user, body.body)


@router.get("/user/{user_id}", response_model=PostPage)
async def list_user_posts(
    user_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    ctx: RequestContext = Depends(require_identity),
) -> PostPage:
    return await _page(ctx, page, limit, None, user_id)


@router.get("/{post_id}", response_model=PostDetail)
async def get_post(
    post_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> PostDetail:
    """One post with the comments the caller is allowed to see."""
    post = await moderation.get_item(ctx.db, Post, post_id, ctx.user)
    result = await ctx.db.execute(
        select(Comment)
        .where(
            Comment.post_id == post.id,
            *moderation.visibility_clauses(Comment, ctx.user),
        )
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    comments = [CommentRead.model_validate(c) for c in result.scalars().all()]
    detail = PostDetail.model_validate(post)
    detail.comments = comments
    return detail


@router.put("/{post_id}", response_model=PostRead)
async def update_post(
    post_id: int,
    body: PostWrite,
    ctx: RequestContext = Depends(require_identity),
) -> Post:
    return await moderation.edit_item(ctx.db, Post, post_id, body.body, ctx.user)


@router.delete("/{post_id}", response_model=SuccessResponse)
async def delete_post(
    post_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> SuccessResponse:
    """Soft-delete: the post disappears for everyone but admins."""
    await moderation.delete_item(ctx.db, Post, post_id, ctx.user)
    return SuccessResponse(message="Post deleted successfully")


@router.post("/{post_id}/restore", response_model=SuccessResponse)
async def restore_post(
    post_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> SuccessResponse:
    await moderation.restore_item(ctx.db, Post, post_id, ctx.user)
    return SuccessResponse(message="Post restored successfully")
