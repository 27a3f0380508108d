"""Schemas for notifications."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

NotificationCategory = Literal[
    "message",
    "follow",
    "system",
    "post_like",
    "post_comment",
    "follow_request",
    "post_tag",
    "message_request",
]


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: UUID
    category: NotificationCategory
    title: str
    message: str
    actor_id: UUID | None = None
    link: str | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]


class NotificationSummaryResponse(BaseModel):
    unread_count: int = 0


class CategoryReadRequest(BaseModel):
    category: NotificationCategory
    actor_id: UUID


__all__ = [
    "NotificationCategory",
    "NotificationResponse",
    "NotificationListResponse",
    "NotificationSummaryResponse",
    "CategoryReadRequest",
]
