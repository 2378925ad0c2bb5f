"""Pydantic schemas for users, registration and login."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from threadline.models.user import Role

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


# ── Auth requests ───────────────────────────────────────────────────
class ClientMeta(BaseModel):
    """Optional client details recorded on the session row."""

    ip_address: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=512)


class LoginRequest(ClientMeta):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=128)


class RegisterRequest(ClientMeta):
    username: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=6, max_length=128)
    confirm_password: str = Field(min_length=6, max_length=128)
    role: Role = Role.USER

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        if not _USERNAME_RE.match(v):
            raise ValueError("Username may only contain letters, digits, '.', '_' and '-'")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("confirm_password")
    @classmethod
    def _passwords_match(cls, v: str, info: ValidationInfo) -> str:
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


# ── User reads ──────────────────────────────────────────────────────
class UserBrief(BaseModel):
    id: int
    username: str
    name: str

    model_config = {"from_attributes": True}


class UserPublic(UserBrief):
    role: Role
    image_url: str | None = None

    model_config = {"from_attributes": True}


class UserRead(UserPublic):
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserPage(BaseModel):
    users: list[UserRead]
    page: int
    limit: int
    total: int
    total_pages: int


# ── User updates ────────────────────────────────────────────────────
class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    image_url: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("Name is required")
        return v


class RoleUpdate(BaseModel):
    role: Role
