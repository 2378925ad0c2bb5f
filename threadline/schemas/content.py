"""Pydantic schemas for posts and comments."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from threadline.core.config import settings
from threadline.models.content import ContentState
from threadline.schemas.user import UserBrief, UserPublic


def _strip_body(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Content is required")
    return v


# ── Requests ────────────────────────────────────────────────────────
class PostWrite(BaseModel):
    body: str = Field(min_length=1, max_length=settings.POST_MAX_LENGTH)

    @field_validator("body")
    @classmethod
    def _body(cls, v: str) -> str:
        return _strip_body(v)


class CommentWrite(BaseModel):
    body: str = Field(min_length=1, max_length=settings.COMMENT_MAX_LENGTH)

    @field_validator("body")
    @classmethod
    def _body(cls, v: str) -> str:
        return _strip_body(v)


# ── Reads ───────────────────────────────────────────────────────────
class ContentRead(BaseModel):
    id: int
    body: str
    owner_id: int
    owner: UserPublic
    edited_by: int | None
    editor: UserBrief | None
    is_edited_by_admin: bool
    state: ContentState
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PostRead(ContentRead):
    pass


class CommentRead(ContentRead):
    post_id: int


class PostDetail(PostRead):
    comments: list[CommentRead] = []


class PostPage(BaseModel):
    posts: list[PostRead]
    page: int
    limit: int
    total: int
    total_pages: int


class CommentPage(BaseModel):
    comments: list[CommentRead]
    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool
