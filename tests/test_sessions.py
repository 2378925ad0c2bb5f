"""Tests for session refresh, logout and listing."""

from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy import select, update

from threadline.db.base import utcnow
from threadline.models.session import UserSession


async def _expire(db_session, session_id: int) -> None:
    await db_session.execute(
        update(UserSession)
        .where(UserSession.id == session_id)
        .values(expires_at=utcnow() - timedelta(minutes=1))
    )
    await db_session.commit()


# ── Refresh ─────────────────────────────────────────────────────────
async def _expires_at(db_session, session_id: int):
    return await db_session.scalar(
        select(UserSession.expires_at).where(UserSession.id == session_id)
    )


async def test_refresh_current_session(async_client: AsyncClient, db_session, alice):
    before = await _expires_at(db_session, alice.session_id)
    resp = await async_client.post("/api/v1/auth/refresh", headers=alice.headers)
    assert resp.status_code == 200
    assert resp.json()["session_id"] == alice.session_id

    after = await _expires_at(db_session, alice.session_id)
    assert after > before


async def test_refresh_named_session(async_client: AsyncClient, alice):
    login = await async_client.post(
        "/api/v1/auth/login", json={"username": "alice", "password": "secret123"}
    )
    other_id = login.json()["session"]["id"]
    resp = await async_client.post(
        "/api/v1/auth/refresh", json={"session_id": other_id}, headers=alice.headers
    )
    assert resp.status_code == 200
    assert resp.json()["session_id"] == other_id


async def test_refresh_someone_elses_session(async_client: AsyncClient, alice, bob):
    resp = await async_client.post(
        "/api/v1/auth/refresh", json={"session_id": bob.session_id}, headers=alice.headers
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


async def test_refresh_expired_session(async_client: AsyncClient, db_session, alice):
    login = await async_client.post(
        "/api/v1/auth/login", json={"username": "alice", "password": "secret123"}
    )
    other_id = login.json()["session"]["id"]
    await _expire(db_session, other_id)

    resp = await async_client.post(
        "/api/v1/auth/refresh", json={"session_id": other_id}, headers=alice.headers
    )
    assert resp.status_code == 404


async def test_expired_token_is_rejected(async_client: AsyncClient, db_session, alice):
    await _expire(db_session, alice.session_id)
    resp = await async_client.get("/api/v1/auth/me", headers=alice.headers)
    assert resp.status_code == 401


# ── Logout ──────────────────────────────────────────────────────────
async def test_logout_invalidates_token(async_client: AsyncClient, alice):
    resp = await async_client.post("/api/v1/auth/logout", headers=alice.headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    me = await async_client.get("/api/v1/auth/me", headers=alice.headers)
    assert me.status_code == 401


async def test_logout_clears_cookie(async_client: AsyncClient, alice):
    resp = await async_client.post("/api/v1/auth/logout", headers=alice.headers)
    cookie = resp.headers["set-cookie"]
    assert cookie.startswith('sessionToken=""') or cookie.startswith("sessionToken=;")
    assert "Max-Age=0" in cookie


async def test_logout_keeps_row(async_client: AsyncClient, db_session, alice):
    await async_client.post("/api/v1/auth/logout", headers=alice.headers)
    row = await db_session.scalar(select(UserSession).where(UserSession.id == alice.session_id))
    assert row is not None
    assert row.is_active is False


async def test_logout_other_session_keeps_current(async_client: AsyncClient, alice):
    login = await async_client.post(
        "/api/v1/auth/login", json={"username": "alice", "password": "secret123"}
    )
    other = login.json()["session"]
    resp = await async_client.post(
        "/api/v1/auth/logout", json={"session_id": other["id"]}, headers=alice.headers
    )
    assert resp.status_code == 200
    assert "set-cookie" not in resp.headers

    assert (await async_client.get("/api/v1/auth/me", headers=alice.headers)).status_code == 200
    dead = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {other['token']}"}
    )
    assert dead.status_code == 401


async def test_logout_all(async_client: AsyncClient, alice, bob):
    login = await async_client.post(
        "/api/v1/auth/login", json={"username": "alice", "password": "secret123"}
    )
    second = login.json()["session"]["token"]

    resp = await async_client.post(
        "/api/v1/auth/logout", json={"logout_all": True}, headers=alice.headers
    )
    assert resp.status_code == 200

    for token in (alice.token, second):
        me = await async_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 401
    # Other users are untouched
    assert (await async_client.get("/api/v1/auth/me", headers=bob.headers)).status_code == 200


async def test_logout_cannot_touch_other_users(async_client: AsyncClient, alice, bob):
    resp = await async_client.post(
        "/api/v1/auth/logout", json={"session_id": bob.session_id}, headers=alice.headers
    )
    assert resp.status_code == 200
    assert (await async_client.get("/api/v1/auth/me", headers=bob.headers)).status_code == 200


# ── Listing ─────────────────────────────────────────────────────────
async def test_list_sessions_only_valid_and_tokenless(async_client: AsyncClient, db_session, alice):
    for _ in range(2):
        await async_client.post(
            "/api/v1/auth/login", json={"username": "alice", "password": "secret123"}
        )
    sessions = (await async_client.get("/api/v1/auth/sessions", headers=alice.headers)).json()
    assert len(sessions) == 3
    assert all("token" not in s for s in sessions)

    newest = sessions[0]["id"]
    await async_client.post(
        "/api/v1/auth/logout", json={"session_id": newest}, headers=alice.headers
    )
    await _expire(db_session, sessions[1]["id"])

    remaining = (await async_client.get("/api/v1/auth/sessions", headers=alice.headers)).json()
    assert [s["id"] for s in remaining] == [alice.session_id]


async def test_get_session_of_other_user(async_client: AsyncClient, alice, bob):
    resp = await async_client.get(f"/api/v1/auth/sessions/{bob.session_id}", headers=alice.headers)
    assert resp.status_code == 404
