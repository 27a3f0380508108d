"""Follow request routes for private accounts."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import FriendRequestListResponse, FriendRequestResponse, FriendRequestStatusResponse
from ..services import (
    accept_friend_request,
    cancel_friend_request,
    check_friend_request_status,
    get_current_user,
    get_pending_friend_requests,
    reject_friend_request,
    send_friend_request,
)

router = APIRouter(prefix="/friend-requests", tags=["friend-requests"])


@router.get("/pending", response_model=FriendRequestListResponse)
def pending_requests_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FriendRequestListResponse:
    requests = get_pending_friend_requests(db, current_user.id)
    return FriendRequestListResponse(items=[FriendRequestResponse.model_validate(item) for item in requests])


@router.get("/status/{user_id}", response_model=FriendRequestStatusResponse)
def request_status_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FriendRequestStatusResponse:
    return FriendRequestStatusResponse(status=check_friend_request_status(db, current_user.id, user_id))


@router.post("/{to_user_id}", response_model=FriendRequestResponse, status_code=status.HTTP_201_CREATED)
def send_request_endpoint(
    to_user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FriendRequestResponse:
    return FriendRequestResponse.model_validate(send_friend_request(db, current_user.id, to_user_id))


@router.post("/{from_user_id}/accept", response_model=FriendRequestResponse)
def accept_request_endpoint(
    from_user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FriendRequestResponse:
    return FriendRequestResponse.model_validate(accept_friend_request(db, from_user_id, current_user.id))


@router.post("/{from_user_id}/reject", response_model=FriendRequestResponse)
def reject_request_endpoint(
    from_user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FriendRequestResponse:
    return FriendRequestResponse.model_validate(reject_friend_request(db, from_user_id, current_user.id))


@router.delete("/{to_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_request_endpoint(
    to_user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    cancel_friend_request(db, current_user.id, to_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
