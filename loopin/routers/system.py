"""Connectivity and offline-queue routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import (
    FlushResponse,
    NetworkStatusResponse,
    NetworkToggleRequest,
    OfflineActionResponse,
    OfflineQueueResponse,
)
from ..services import (
    check_backend_connectivity,
    clear_offline_queue,
    flush_offline_queue,
    get_current_user,
    get_offline_queue,
    is_operator,
    network_status,
    offline_replay_handlers,
    require_roles,
    toggle_backend_network,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])


def _queue_owner(user: User) -> str | None:
    """Admins act on the whole queue; everyone else only on their own actions."""

    return None if is_operator(user) else str(user.id)


def _status_response() -> NetworkStatusResponse:
    state = network_status.state
    return NetworkStatusResponse(
        is_online=state.is_online,
        backend_connected=state.backend_connected,
        last_checked=state.last_checked,
    )


@router.get("/network", response_model=NetworkStatusResponse)
def network_status_endpoint() -> NetworkStatusResponse:
    return _status_response()


@router.post("/network/check", response_model=NetworkStatusResponse)
def connectivity_check_endpoint() -> NetworkStatusResponse:
    check_backend_connectivity()
    return _status_response()


@router.post("/network", response_model=NetworkStatusResponse)
def toggle_network_endpoint(
    payload: NetworkToggleRequest,
    current_user: User = Depends(require_roles("admin")),
) -> NetworkStatusResponse:
    logger.info("User %s switched backend network %s", current_user.id, "on" if payload.enable else "off")
    toggle_backend_network(payload.enable)
    return _status_response()


@router.get("/offline-queue", response_model=OfflineQueueResponse)
def offline_queue_endpoint(current_user: User = Depends(get_current_user)) -> OfflineQueueResponse:
    items = [OfflineActionResponse(**item) for item in get_offline_queue(_queue_owner(current_user))]
    return OfflineQueueResponse(items=items, count=len(items))


@router.post("/offline-queue/flush", response_model=FlushResponse)
def flush_queue_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> FlushResponse:
    result = flush_offline_queue(offline_replay_handlers(db), owner_id=_queue_owner(current_user))
    return FlushResponse(replayed=result.replayed, remaining=result.remaining)


@router.delete("/offline-queue", status_code=status.HTTP_204_NO_CONTENT)
def clear_queue_endpoint(current_user: User = Depends(get_current_user)) -> Response:
    removed = clear_offline_queue(_queue_owner(current_user))
    logger.info("User %s cleared %s queued offline actions", current_user.id, removed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
