"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from threadline.api.v1.endpoints import auth, comments, health, posts, users

api_router = APIRouter()

# Register, login, sessions
api_router.include_router(auth.router)

# Timeline and threads
api_router.include_router(posts.router)
api_router.include_router(comments.router)

# Directory, profiles, role grants
api_router.include_router(users.router)

api_router.include_router(health.router)
