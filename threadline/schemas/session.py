"""Pydantic schemas for sessions and auth responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from threadline.schemas.user import UserPublic


class SessionGrant(BaseModel):
    """Returned once, at creation: the only place the token is ever echoed."""

    id: int
    token: str
    expires_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    user: UserPublic
    session: SessionGrant


class SessionSummary(BaseModel):
    id: int
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
    expires_at: datetime

    model_config = {"from_attributes": True}


class RefreshRequest(BaseModel):
    session_id: int | None = None


class RefreshResponse(BaseModel):
    session_id: int
    expires_at: datetime


class LogoutRequest(BaseModel):
    session_id: int | None = None
    logout_all: bool = False


class SuccessResponse(BaseModel):
    success: bool = True
    message: str | None = None
