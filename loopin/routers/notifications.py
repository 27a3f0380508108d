"""Notification routes and the live notification socket."""
from __future__ import annotations

import json
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import (
    CategoryReadRequest,
    NotificationListResponse,
    NotificationResponse,
    NotificationSummaryResponse,
)
from ..services import (
    decode_access_token,
    get_current_user,
    get_notifications_for_user,
    get_unread_notifications_count,
    mark_all_notifications_as_read,
    mark_notification_as_read,
    mark_notifications_as_read_by_category_and_actor,
    notification_stream,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> NotificationListResponse:
    items = get_notifications_for_user(db, current_user.id)
    return NotificationListResponse(items=[NotificationResponse.model_validate(item) for item in items])


@router.get("/summary", response_model=NotificationSummaryResponse)
def notification_summary_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> NotificationSummaryResponse:
    return NotificationSummaryResponse(unread_count=get_unread_notifications_count(db, current_user.id))


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
def mark_all_read_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    mark_all_notifications_as_read(db, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/read-by-category", status_code=status.HTTP_204_NO_CONTENT)
def mark_category_read_endpoint(
    payload: CategoryReadRequest,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    mark_notifications_as_read_by_category_and_actor(db, current_user.id, payload.category, payload.actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read_endpoint(
    notification_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> NotificationResponse:
    return NotificationResponse.model_validate(mark_notification_as_read(db, current_user.id, notification_id))


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: str = Query(..., alias="token"),
    db: Session = Depends(get_session),
) -> None:
    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    channel = str(user_id)
    snapshot = [
        NotificationResponse.model_validate(item).model_dump(mode="json")
        for item in get_notifications_for_user(db, user_id)
    ]
    await notification_stream.connect(channel, websocket)
    await websocket.send_text(json.dumps({"type": "snapshot", "notifications": snapshot}))
    try:
        while True:
            try:
                payload = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            if payload.strip().lower() == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    finally:
        await notification_stream.disconnect(websocket)
