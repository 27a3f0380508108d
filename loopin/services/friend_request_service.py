"""Follow requests for private accounts."""
from __future__ import annotations

import logging
from typing import Literal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Follow, FriendRequest, User
from .notification_service import notify_quietly
from .persistence import run_read, run_write

logger = logging.getLogger(__name__)

RequestStatus = Literal["none", "pending", "accepted", "rejected"]


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = run_read(db, lambda: db.get(User, user_id))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _find_request(db: Session, from_id: UUID, to_id: UUID) -> FriendRequest | None:
    stmt = select(FriendRequest).where(FriendRequest.from_user_id == from_id, FriendRequest.to_user_id == to_id)
    return run_read(db, lambda: db.scalar(stmt))


def send_friend_request(db: Session, from_id: UUID, to_id: UUID) -> FriendRequest:
    if from_id == to_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot send a request to yourself")
    from_user = _get_user_or_404(db, from_id)
    _get_user_or_404(db, to_id)

    if run_read(db, lambda: db.get(Follow, (from_id, to_id))) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already following this user")

    existing = _find_request(db, from_id, to_id)
    if existing is not None and existing.status in {"pending", "accepted"}:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Friend request already sent")

    def _send() -> FriendRequest:
        if existing is not None:
            existing.status = "pending"
            record = existing
        else:
            record = FriendRequest(from_user_id=from_id, to_user_id=to_id, status="pending")
            db.add(record)
        db.commit()
        db.refresh(record)
        return record

    request = run_write(
        db, _send, error_detail="Failed to send friend request", offline_error_msg="Failed to send friend request"
    )
    notify_quietly(
        db,
        to_id,
        category="follow_request",
        title="New Follow Request",
        message=f"{from_user.username} has requested to follow you.",
        actor_id=from_id,
        link=f"/chat/profile/{from_id}",
    )
    return request


def _get_pending_or_404(db: Session, from_id: UUID, to_id: UUID) -> FriendRequest:
    request = _find_request(db, from_id, to_id)
    if request is None or request.status != "pending":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending friend request")
    return request


def accept_friend_request(db: Session, from_id: UUID, to_id: UUID) -> FriendRequest:
    """Accept a pending request; the sender starts following the recipient."""

    request = _get_pending_or_404(db, from_id, to_id)
    to_user = _get_user_or_404(db, to_id)

    def _accept() -> FriendRequest:
        request.status = "accepted"
        if db.get(Follow, (from_id, to_id)) is None:
            db.add(Follow(follower_id=from_id, following_id=to_id))
        db.commit()
        db.refresh(request)
        return request

    accepted = run_write(
        db, _accept, error_detail="Failed to accept friend request", offline_error_msg="Failed to accept friend request"
    )
    notify_quietly(
        db,
        from_id,
        category="follow",
        title="Follow Request Accepted",
        message=f"{to_user.username} accepted your follow request.",
        actor_id=to_id,
        link=f"/chat/profile/{to_id}",
    )
    return accepted


def reject_friend_request(db: Session, from_id: UUID, to_id: UUID) -> FriendRequest:
    request = _get_pending_or_404(db, from_id, to_id)
    to_user = _get_user_or_404(db, to_id)

    def _reject() -> FriendRequest:
        request.status = "rejected"
        db.commit()
        db.refresh(request)
        return request

    rejected = run_write(
        db, _reject, error_detail="Failed to reject friend request", offline_error_msg="Failed to reject friend request"
    )
    notify_quietly(
        db,
        from_id,
        category="follow",
        title="Follow Request Declined",
        message=f"{to_user.username} declined your follow request.",
        actor_id=to_id,
        link=f"/chat/profile/{to_id}",
    )
    return rejected


def cancel_friend_request(db: Session, from_id: UUID, to_id: UUID) -> bool:
    def _cancel() -> bool:
        request = db.scalar(
            select(FriendRequest).where(FriendRequest.from_user_id == from_id, FriendRequest.to_user_id == to_id)
        )
        if request is None:
            return False
        db.delete(request)
        db.commit()
        return True

    return run_write(
        db, _cancel, error_detail="Failed to cancel friend request", offline_error_msg="Failed to cancel friend request"
    )


def get_pending_friend_requests(db: Session, user_id: UUID) -> list[FriendRequest]:
    stmt = (
        select(FriendRequest)
        .where(FriendRequest.to_user_id == user_id, FriendRequest.status == "pending")
        .order_by(FriendRequest.created_at.desc())
    )
    return run_read(db, lambda: list(db.scalars(stmt)), offline_error_msg="Failed to get pending friend requests")


def check_friend_request_status(db: Session, from_id: UUID, to_id: UUID) -> RequestStatus:
    request = _find_request(db, from_id, to_id)
    if request is None:
        return "none"
    return request.status


__all__ = [
    "RequestStatus",
    "send_friend_request",
    "accept_friend_request",
    "reject_friend_request",
    "cancel_friend_request",
    "get_pending_friend_requests",
    "check_friend_request_status",
]
