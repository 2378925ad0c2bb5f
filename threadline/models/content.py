"""
Post & Comment models — the moderated content domain.

Both share one lifecycle (see ``ContentMixin``): created by the owner,
edited by the owner or an admin, soft-deleted, and restored by an admin.
Nothing in this package ever issues a hard DELETE against these tables.
"""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, Text, false
from sqlalchemy.orm import declared_attr, relationship

from threadline.db.base import Base, utcnow


class ContentState(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class ContentMixin:
    id = Column(Integer, primary_key=True, index=True)
    body = Column(Text, nullable=False)
    is_edited_by_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    state = Column(
        Enum(
            ContentState,
            name="content_state",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ContentState.ACTIVE,
        server_default=ContentState.ACTIVE.value,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @declared_attr
    def owner_id(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def edited_by(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True)

    @declared_attr
    def owner(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.owner_id", lazy="selectin")

    @declared_attr
    def editor(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.edited_by", lazy="selectin")

    @property
    def is_deleted(self) -> bool:
        return self.state == ContentState.DELETED


class Post(ContentMixin, Base):
    __tablename__ = "posts"


class Comment(ContentMixin, Base):
    __tablename__ = "comments"

    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
