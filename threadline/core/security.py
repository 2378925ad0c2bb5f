"""
Password hashing (bcrypt) and opaque session token generation.
"""

from __future__ import annotations

import re
import secrets

from passlib.context import CryptContext

from threadline.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# 32 random bytes, hex encoded
TOKEN_BYTES = 32
_TOKEN_RE = re.compile(rf"^[0-9a-f]{{{TOKEN_BYTES * 2}}}$")

# Verified against when the username does not exist so both failure
# paths do the same amount of work.
_DUMMY_HASH = pwd_context.hash("threadline-dummy-password")


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


def burn_password_check(plain: str) -> None:
    pwd_context.verify(plain, _DUMMY_HASH)


# ── Session tokens ──────────────────────────────────────────────────
def generate_session_token() -> str:
    """Return a new unguessable bearer token (256 bits of entropy)."""
    return secrets.token_hex(TOKEN_BYTES)


def is_well_formed_token(token: object) -> bool:
    """Cheap shape check run before any datastore lookup."""
    return isinstance(token, str) and _TOKEN_RE.match(token) is not None
