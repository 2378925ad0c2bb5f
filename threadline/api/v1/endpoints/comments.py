"""
Comment endpoints — per-post threads plus edit / delete / restore.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from threadline.api.v1.deps import require_identity
from threadline.core.context import RequestContext
from threadline.models.content import Comment, Post
from threadline.schemas.content import CommentPage, CommentRead, CommentWrite
from threadline.schemas.session import SuccessResponse
from threadline.services import moderation

router = APIRouter(tags=["comments"])


# ── Per-post thread ─────────────────────────────────────────────────
@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: int,
    body: CommentWrite,
    ctx: RequestContext = Depends(require_identity),
) -> Comment:
    """Comment on a post. Deleted posts take no new comments, even from admins."""
    post = await moderation.get_item(ctx.db, Post, post_id, None)
    return await moderation.create_item(ctx.db, Comment, ctx.user, body.body, post_id=post.id)


@router.get("/posts/{post_id}/comments", response_model=CommentPage)
async def list_comments(
    post_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    ctx: RequestContext = Depends(require_identity),
) -> CommentPage:
    post = await moderation.get_item(ctx.db, Post, post_id, ctx.user)
    comments, total, total_pages = await moderation.list_items(
        ctx.db,
        Comment,
        ctx.user,
        page=page,
        limit=limit,
        extra_clauses=(Comment.post_id == post.id,),
    )
    return CommentPage(
        comments=[CommentRead.model_validate(c) for c in comments],
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_more=page < total_pages,
    )


# ── Single comment ──────────────────────────────────────────────────
@router.get("/comments/{comment_id}", response_model=CommentRead)
async def get_comment(
    comment_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> Comment:
    return await moderation.get_item(ctx.db, Comment, comment_id, ctx.user)


@router.put("/comments/{comment_id}", response_model=CommentRead)
async def update_comment(
    comment_id: int,
    body: CommentWrite,
    ctx: RequestContext = Depends(require_identity),
) -> Comment:
    return await moderation.edit_item(ctx.db, Comment, comment_id, body.body, ctx.user)


@router.delete("/comments/{comment_id}", response_model=SuccessResponse)
async def delete_comment(
    comment_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> SuccessResponse:
    await moderation.delete_item(ctx.db, Comment, comment_id, ctx.user)
    return SuccessResponse(message="Comment deleted successfully")


@router.post("/comments/{comment_id}/restore", response_model=SuccessResponse)
async def restore_comment(
    comment_id: int,
    ctx: RequestContext = Depends(require_identity),
) -> SuccessResponse:
    """Admins only."""
    await moderation.restore_item(ctx.db, Comment, comment_id, ctx.user)
    return SuccessResponse(message="Comment restored successfully")
