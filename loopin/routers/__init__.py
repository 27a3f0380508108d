"""Aggregate router exports."""
from .auth import router as auth_router
from .blocks import router as blocks_router
from .conversations import router as conversations_router
from .follows import router as follows_router
from .friend_requests import router as friend_requests_router
from .notifications import router as notifications_router
from .posts import router as posts_router
from .system import router as system_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "blocks_router",
    "conversations_router",
    "follows_router",
    "friend_requests_router",
    "notifications_router",
    "posts_router",
    "system_router",
    "users_router",
]
