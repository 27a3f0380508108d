"""Schemas for connectivity and offline-queue introspection."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class NetworkStatusResponse(BaseModel):
    is_online: bool
    backend_connected: bool
    last_checked: float


class NetworkToggleRequest(BaseModel):
    enable: bool


class OfflineActionResponse(BaseModel):
    action_type: str
    owner_id: str | None = None
    payload: dict[str, Any]
    timestamp: int


class OfflineQueueResponse(BaseModel):
    items: list[OfflineActionResponse]
    count: int


class FlushResponse(BaseModel):
    replayed: int
    remaining: int


__all__ = [
    "NetworkStatusResponse",
    "NetworkToggleRequest",
    "OfflineActionResponse",
    "OfflineQueueResponse",
    "FlushResponse",
]
