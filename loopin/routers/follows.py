"""Follow management API routes."""
from __future__ import annotations

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import (
    FollowActionRequest,
    FollowActionResponse,
    FollowStatsResponse,
    PendingCountResponse,
    UserListResponse,
    UserSummary,
)
from ..services import (
    get_current_user,
    get_follow_stats,
    get_followers,
    get_following,
    get_pending_requests_count,
    update_user_follow_status,
)

router = APIRouter(prefix="/follows", tags=["follows"])


def _action_response(db: Session, target_id: UUID, viewer_id: UUID, changed: bool, verb: str) -> FollowActionResponse:
    payload = asdict(get_follow_stats(db, target_id, viewer_id))
    payload["status"] = verb if changed else "noop"
    return FollowActionResponse(**payload)


@router.post("/{target_id}", response_model=FollowActionResponse)
def update_follow_endpoint(
    target_id: UUID,
    payload: FollowActionRequest,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FollowActionResponse:
    changed = update_user_follow_status(db, current_user.id, target_id, payload.action)
    verb = "followed" if payload.action == "follow" else "unfollowed"
    return _action_response(db, target_id, current_user.id, changed, verb)


@router.delete("/{target_id}", response_model=FollowActionResponse)
def unfollow_endpoint(
    target_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FollowActionResponse:
    changed = update_user_follow_status(db, current_user.id, target_id, "unfollow")
    return _action_response(db, target_id, current_user.id, changed, "unfollowed")


@router.get("/stats/{user_id}", response_model=FollowStatsResponse)
def follow_stats_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FollowStatsResponse:
    return FollowStatsResponse(**asdict(get_follow_stats(db, user_id, current_user.id)))


@router.get("/requests/pending-count", response_model=PendingCountResponse)
def pending_count_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PendingCountResponse:
    return PendingCountResponse(pending_count=get_pending_requests_count(db, current_user.id))


@router.get("/{user_id}/followers", response_model=UserListResponse)
def followers_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserListResponse:
    return UserListResponse(items=[UserSummary.model_validate(user) for user in get_followers(db, user_id)])


@router.get("/{user_id}/following", response_model=UserListResponse)
def following_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserListResponse:
    return UserListResponse(items=[UserSummary.model_validate(user) for user in get_following(db, user_id)])
