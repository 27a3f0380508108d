"""Block list management."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session

from ..models import Block, Follow, User
from .persistence import run_read, run_write

logger = logging.getLogger(__name__)


def block_user(db: Session, current_id: UUID, target_id: UUID) -> bool:
    """Block ``target_id`` and drop follows in both directions."""

    if current_id == target_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot block yourself")
    if run_read(db, lambda: db.get(User, target_id)) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    def _block() -> bool:
        if db.get(Block, (current_id, target_id)) is None:
            db.add(Block(blocker_id=current_id, blocked_id=target_id))
        db.execute(
            delete(Follow).where(
                or_(
                    and_(Follow.follower_id == current_id, Follow.following_id == target_id),
                    and_(Follow.follower_id == target_id, Follow.following_id == current_id),
                )
            )
        )
        db.commit()
        return True

    result = run_write(db, _block, error_detail="Failed to block user", offline_error_msg="Failed to block user")
    logger.info("User %s blocked %s", current_id, target_id)
    return result


def unblock_user(db: Session, current_id: UUID, target_id: UUID) -> bool:
    def _unblock() -> bool:
        record = db.get(Block, (current_id, target_id))
        if record is None:
            return False
        db.delete(record)
        db.commit()
        return True

    return run_write(db, _unblock, error_detail="Failed to unblock user", offline_error_msg="Failed to unblock user")


def get_blocked_users(db: Session, user_id: UUID) -> list[UUID]:
    stmt = select(Block.blocked_id).where(Block.blocker_id == user_id).order_by(Block.created_at)
    return run_read(db, lambda: list(db.scalars(stmt)), offline_error_msg="Failed to get blocked users")


def is_user_blocked(db: Session, current_id: UUID, target_id: UUID) -> bool:
    """Return ``True`` when ``current_id`` has blocked ``target_id``."""

    return run_read(db, lambda: db.get(Block, (current_id, target_id))) is not None


def is_blocked_either_way(db: Session, first_id: UUID, second_id: UUID) -> bool:
    stmt = select(Block.blocker_id).where(
        or_(
            and_(Block.blocker_id == first_id, Block.blocked_id == second_id),
            and_(Block.blocker_id == second_id, Block.blocked_id == first_id),
        )
    )
    return run_read(db, lambda: db.scalar(stmt.limit(1))) is not None


__all__ = ["block_user", "unblock_user", "get_blocked_users", "is_user_blocked", "is_blocked_either_way"]
