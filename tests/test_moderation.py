"""Unit tests for the moderation rules and the service layer below HTTP."""

import pytest

from threadline.core.exceptions import AlreadyDeleted, Forbidden, NotDeleted, NotFound
from threadline.models.content import Comment, ContentState, Post
from threadline.models.user import Role, User
from threadline.services import moderation


def _user(user_id: int, role: Role = Role.USER) -> User:
    return User(id=user_id, username=f"u{user_id}", name="U", hashed_password="x", role=role)


# ── Pure rules ──────────────────────────────────────────────────────
def test_can_modify():
    owner, stranger, admin = _user(1), _user(2), _user(3, Role.ADMIN)
    assert moderation.can_modify(owner, 1)
    assert not moderation.can_modify(stranger, 1)
    assert moderation.can_modify(admin, 1)


def test_edit_attribution_prefers_ownership():
    admin = _user(3, Role.ADMIN)
    assert moderation.edit_attribution(admin, 1) == (3, True)
    assert moderation.edit_attribution(admin, 3) == (3, False)
    assert moderation.edit_attribution(_user(1), 1) == (1, False)


def test_visibility_clauses():
    assert moderation.visibility_clauses(Post, _user(9, Role.ADMIN)) == []
    assert len(moderation.visibility_clauses(Post, _user(1))) == 1
    # Comments also require their post to be active
    assert len(moderation.visibility_clauses(Comment, None)) == 2
    assert moderation.visibility_clauses(Comment, _user(9, Role.ADMIN)) == []


# ── Service layer ───────────────────────────────────────────────────
@pytest.fixture
async def people(make_account):
    owner = await make_account("owner")
    other = await make_account("other")
    boss = await make_account("boss", role=Role.ADMIN)
    return owner.user, other.user, boss.user


async def test_lifecycle(db_session, people):
    owner, _, boss = people
    post = await moderation.create_item(db_session, Post, owner, "draft")
    assert post.state == ContentState.ACTIVE

    edited = await moderation.edit_item(db_session, Post, post.id, "final", boss)
    assert edited.body == "final"
    assert edited.edited_by == boss.id
    assert edited.is_edited_by_admin is True

    await moderation.delete_item(db_session, Post, post.id, owner)
    with pytest.raises(NotFound):
        await moderation.get_item(db_session, Post, post.id, owner)
    assert (await moderation.get_item(db_session, Post, post.id, boss)).is_deleted

    with pytest.raises(AlreadyDeleted):
        await moderation.delete_item(db_session, Post, post.id, owner)

    await moderation.restore_item(db_session, Post, post.id, boss)
    restored = await moderation.get_item(db_session, Post, post.id, owner)
    assert restored.body == "final"

    with pytest.raises(NotDeleted):
        await moderation.restore_item(db_session, Post, post.id, boss)

    again = await moderation.edit_item(db_session, Post, post.id, "final, again", owner)
    assert again.state == ContentState.ACTIVE
    assert again.body == "final, again"
    assert again.edited_by == owner.id
    assert again.is_edited_by_admin is False


async def test_failure_classification(db_session, people):
    owner, other, boss = people
    post = await moderation.create_item(db_session, Post, owner, "mine")

    with pytest.raises(Forbidden):
        await moderation.edit_item(db_session, Post, post.id, "x", other)
    with pytest.raises(Forbidden):
        await moderation.restore_item(db_session, Post, post.id, other)
    with pytest.raises(NotFound):
        await moderation.edit_item(db_session, Post, post.id + 100, "x", boss)

    await moderation.delete_item(db_session, Post, post.id, boss)
    with pytest.raises(NotFound):
        await moderation.delete_item(db_session, Post, post.id, other)
    with pytest.raises(AlreadyDeleted):
        await moderation.edit_item(db_session, Post, post.id, "x", boss)


async def test_list_total_matches_visible_items(db_session, people):
    owner, other, boss = people
    for i in range(3):
        await moderation.create_item(db_session, Post, owner, f"p{i}")
    hidden = await moderation.create_item(db_session, Post, other, "hidden")
    await moderation.delete_item(db_session, Post, hidden.id, other)

    items, total, pages = await moderation.list_items(db_session, Post, owner, limit=2)
    assert total == 3
    assert pages == 2
    assert len(items) == 2

    _, admin_total, _ = await moderation.list_items(db_session, Post, boss, limit=2)
    assert admin_total == 4

    _, by_owner, _ = await moderation.list_items(db_session, Post, boss, owner_id=other.id)
    assert by_owner == 1
