"""
Authorization & moderation engine for posts and comments.

State machine per item (``ContentState``)::

    ACTIVE  --edit-->    ACTIVE    owner or admin
    ACTIVE  --delete-->  DELETED   owner or admin, body kept
    DELETED --restore--> ACTIVE    admin only
    DELETED --edit/delete-->       rejected (AlreadyDeleted)

For non-admins a comment also disappears while its post is deleted: it
is filtered from reads and refused by edit/delete as NotFound.

Each transition is one conditional UPDATE whose WHERE clause carries the
id, the required state and the permission rule, so nothing can change
between the check and the write. Only when that UPDATE matches no row is
the current row read back, to pick the right error.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Union

from sqlalchemy import false, func, or_, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession

from threadline.core.exceptions import AlreadyDeleted, Forbidden, NotDeleted, NotFound
from threadline.db.base import utcnow
from threadline.models.content import Comment, ContentState, Post
from threadline.models.user import User

logger = logging.getLogger(__name__)

ContentModel = Union[type[Post], type[Comment]]


# ── Rules ───────────────────────────────────────────────────────────
def can_modify(actor: User, owner_id: int) -> bool:
    """Owners may edit/delete their own items; admins may act on anyone's."""
    return actor.id == owner_id or actor.is_admin


def edit_attribution(actor: User, owner_id: int) -> tuple[int, bool]:
    """Return ``(edited_by, is_edited_by_admin)`` for an edit by ``actor``.

    Ownership wins over role: an admin editing their own item is a plain
    self-edit.
    """
    return actor.id, actor.is_admin and actor.id != owner_id


def _parent_clauses(model: ContentModel, actor: User | None) -> list:
    # Comments under a deleted post are as invisible as the post itself
    if model is not Comment or (actor is not None and actor.is_admin):
        return []
    return [Comment.post_id.in_(select(Post.id).where(Post.state == ContentState.ACTIVE))]


def visibility_clauses(model: ContentModel, actor: User | None) -> list:
    """Query-time filter: deleted items exist only for admins."""
    if actor is not None and actor.is_admin:
        return []
    return [model.state == ContentState.ACTIVE, *_parent_clauses(model, actor)]


def _permission_clause(model: ContentModel, actor: User):
    if actor.is_admin:
        return true()
    return model.owner_id == actor.id


def _attribution_values(model: ContentModel, actor: User) -> dict[str, Any]:
    # Same rule as edit_attribution, evaluated against the row being updated
    by_admin = (model.owner_id != actor.id) if actor.is_admin else false()
    return {"edited_by": actor.id, "is_edited_by_admin": by_admin}


def _noun(model: ContentModel) -> str:
    return model.__name__.lower()


# ── Reads ───────────────────────────────────────────────────────────
async def _fetch(db: AsyncSession, model: ContentModel, item_id: int):
    result = await db.execute(
        select(model)
        .where(model.id == item_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_item(db: AsyncSession, model: ContentModel, item_id: int, actor: User | None):
    result = await db.execute(
        select(model)
        .where(model.id == item_id, *visibility_clauses(model, actor))
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFound(f"{model.__name__} not found")
    return item


async def list_items(
    db: AsyncSession,
    model: ContentModel,
    actor: User | None,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    owner_id: int | None = None,
    extra_clauses: tuple = (),
) -> tuple[list, int, int]:
    """Return ``(items, total, total_pages)``.

    The same WHERE clause drives both the page and the count, so totals
    never reveal items the caller cannot see.
    """
    clauses = [*visibility_clauses(model, actor), *extra_clauses]
    if owner_id is not None:
        clauses.append(model.owner_id == owner_id)
    if search:
        # Escape SQL LIKE metacharacters to prevent wildcard injection
        safe = search.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")
        pattern = f"%{safe}%"
        clauses.append(
            or_(
                model.body.ilike(pattern, escape="\\"),
                User.username.ilike(pattern, escape="\\"),
            )
        )

    owner_join = (User, model.owner_id == User.id)

    total = await db.scalar(
        select(func.count(model.id)).select_from(model).join(*owner_join).where(*clauses)
    )
    total = total or 0

    result = await db.execute(
        select(model)
        .join(*owner_join)
        .where(*clauses)
        .order_by(model.created_at.desc(), model.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = list(result.scalars().all())
    return items, total, math.ceil(total / limit) if limit else 0


# ── Writes ──────────────────────────────────────────────────────────
async def create_item(
    db: AsyncSession,
    model: ContentModel,
    actor: User,
    body: str,
    **fields: Any,
):
    item = model(body=body, owner_id=actor.id, state=ContentState.ACTIVE, **fields)
    db.add(item)
    await db.commit()
    logger.info("%s %d created by user %d", model.__name__, item.id, actor.id)
    return await _fetch(db, model, item.id)


async def _hidden_by_parent(db: AsyncSession, model: ContentModel, item, actor: User) -> bool:
    if not _parent_clauses(model, actor):
        return False
    state = await db.scalar(select(Post.state).where(Post.id == item.post_id))
    return state != ContentState.ACTIVE


async def _raise_for_rejected_write(
    db: AsyncSession, model: ContentModel, item_id: int, actor: User
) -> None:
    item = await _fetch(db, model, item_id)
    if item is None or await _hidden_by_parent(db, model, item, actor):
        raise NotFound(f"{model.__name__} not found")
    if not can_modify(actor, item.owner_id):
        # Deleted content is invisible to anyone who could not have deleted it
        if item.is_deleted:
            raise NotFound(f"{model.__name__} not found")
        raise Forbidden(f"You don't have permission to modify this {_noun(model)}")
    raise AlreadyDeleted(f"{model.__name__} has been deleted")


async def edit_item(
    db: AsyncSession,
    model: ContentModel,
    item_id: int,
    body: str,
    actor: User,
):
    """Replace the body of an active item and stamp the attribution fields."""
    result = await db.execute(
        update(model)
        .where(
            model.id == item_id,
            model.state == ContentState.ACTIVE,
            _permission_clause(model, actor),
            *_parent_clauses(model, actor),
        )
        .values(body=body, updated_at=utcnow(), **_attribution_values(model, actor))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await _raise_for_rejected_write(db, model, item_id, actor)

    await db.commit()
    item = await _fetch(db, model, item_id)
    _, on_behalf = edit_attribution(actor, item.owner_id)
    logger.info(
        "%s %d edited by user %d%s",
        model.__name__,
        item_id,
        actor.id,
        " on behalf of the owner" if on_behalf else "",
    )
    return item


async def delete_item(db: AsyncSession, model: ContentModel, item_id: int, actor: User) -> None:
    """Soft-delete an active item. The body is kept for admins and restore."""
    result = await db.execute(
        update(model)
        .where(
            model.id == item_id,
            model.state == ContentState.ACTIVE,
            _permission_clause(model, actor),
            *_parent_clauses(model, actor),
        )
        .values(state=ContentState.DELETED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await _raise_for_rejected_write(db, model, item_id, actor)

    await db.commit()
    logger.info("%s %d deleted by user %d", model.__name__, item_id, actor.id)


async def restore_item(db: AsyncSession, model: ContentModel, item_id: int, actor: User) -> None:
    """Bring a soft-deleted item back. Admins only."""
    if not actor.is_admin:
        raise Forbidden(f"Only admins can restore a {_noun(model)}")

    result = await db.execute(
        update(model)
        .where(model.id == item_id, model.state == ContentState.DELETED)
        .values(state=ContentState.ACTIVE, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if await _fetch(db, model, item_id) is None:
            raise NotFound(f"{model.__name__} not found")
        raise NotDeleted(f"{model.__name__} is not deleted")

    await db.commit()
    logger.info("%s %d restored by admin %d", model.__name__, item_id, actor.id)
