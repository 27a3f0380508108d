"""Business logic for follower relationships."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import Follow, FriendRequest, User
from .block_service import is_blocked_either_way
from .notification_service import notify_quietly
from .persistence import run_read, run_write

logger = logging.getLogger(__name__)

FollowAction = Literal["follow", "unfollow"]


@dataclass(slots=True)
class FollowStats:
    user_id: UUID
    followers_count: int
    following_count: int
    is_following: bool


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = run_read(db, lambda: db.get(User, user_id))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def is_following(db: Session, follower_id: UUID, following_id: UUID) -> bool:
    return run_read(db, lambda: db.get(Follow, (follower_id, following_id))) is not None


def update_user_follow_status(
    db: Session,
    current_user_id: UUID,
    target_user_id: UUID,
    action: FollowAction,
) -> bool:
    """Follow or unfollow a public account; returns whether anything changed."""

    if current_user_id == target_user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot follow yourself")

    target = _get_user_or_404(db, target_user_id)

    if action == "unfollow":
        def _unfollow() -> bool:
            record = db.get(Follow, (current_user_id, target_user_id))
            if record is None:
                return False
            db.delete(record)
            db.commit()
            return True

        return run_write(db, _unfollow, error_detail="Unable to unfollow user")

    if action != "follow":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported follow action")
    if target.is_private:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot follow private account directly; use a follow request",
        )
    if is_blocked_either_way(db, current_user_id, target_user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot follow this user")

    def _follow() -> bool:
        if db.get(Follow, (current_user_id, target_user_id)) is not None:
            return False
        db.add(Follow(follower_id=current_user_id, following_id=target_user_id))
        db.commit()
        return True

    created = run_write(db, _follow, error_detail="Unable to follow user")
    if created:
        follower = db.get(User, current_user_id)
        notify_quietly(
            db,
            target_user_id,
            category="follow",
            title="New Follower",
            message=f"{follower.username if follower else 'Someone'} started following you.",
            actor_id=current_user_id,
            link=f"/chat/profile/{current_user_id}",
        )
    return created


def get_follow_stats(db: Session, user_id: UUID, viewer_id: UUID | None = None) -> FollowStats:
    _get_user_or_404(db, user_id)

    def _stats() -> FollowStats:
        followers_count = db.scalar(
            select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
        ) or 0
        following_count = db.scalar(
            select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        ) or 0
        following = viewer_id is not None and db.get(Follow, (viewer_id, user_id)) is not None
        return FollowStats(
            user_id=user_id,
            followers_count=int(followers_count),
            following_count=int(following_count),
            is_following=following,
        )

    return run_read(db, _stats)


def get_followers(db: Session, user_id: UUID) -> list[User]:
    stmt = select(User).join(Follow, Follow.follower_id == User.id).where(Follow.following_id == user_id)
    return run_read(db, lambda: list(db.scalars(stmt.order_by(User.username))))


def get_following(db: Session, user_id: UUID) -> list[User]:
    stmt = select(User).join(Follow, Follow.following_id == User.id).where(Follow.follower_id == user_id)
    return run_read(db, lambda: list(db.scalars(stmt.order_by(User.username))))


def get_pending_requests_count(db: Session, user_id: UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(FriendRequest)
        .where(FriendRequest.to_user_id == user_id, FriendRequest.status == "pending")
    )
    return run_read(db, lambda: int(db.scalar(stmt) or 0))


__all__ = [
    "FollowAction",
    "FollowStats",
    "is_following",
    "update_user_follow_status",
    "get_follow_stats",
    "get_followers",
    "get_following",
    "get_pending_requests_count",
]
