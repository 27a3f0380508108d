"""Block list routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import BlockListResponse, BlockStatusResponse
from ..services import block_user, get_blocked_users, get_current_user, is_user_blocked, unblock_user

router = APIRouter(prefix="/blocks", tags=["blocks"])


@router.get("", response_model=BlockListResponse)
def blocked_users_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> BlockListResponse:
    return BlockListResponse(blocked_user_ids=get_blocked_users(db, current_user.id))


@router.get("/{target_id}", response_model=BlockStatusResponse)
def block_status_endpoint(
    target_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> BlockStatusResponse:
    return BlockStatusResponse(user_id=target_id, is_blocked=is_user_blocked(db, current_user.id, target_id))


@router.post("/{target_id}", response_model=BlockStatusResponse)
def block_endpoint(
    target_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> BlockStatusResponse:
    block_user(db, current_user.id, target_id)
    return BlockStatusResponse(user_id=target_id, is_blocked=True)


@router.delete("/{target_id}", response_model=BlockStatusResponse)
def unblock_endpoint(
    target_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> BlockStatusResponse:
    unblock_user(db, current_user.id, target_id)
    return BlockStatusResponse(user_id=target_id, is_blocked=False)
