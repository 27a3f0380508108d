"""Schemas for follow requests sent to private accounts."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class FriendRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    status: Literal["pending", "accepted", "rejected"]
    created_at: datetime
    updated_at: datetime


class FriendRequestListResponse(BaseModel):
    items: list[FriendRequestResponse]


class FriendRequestStatusResponse(BaseModel):
    status: Literal["none", "pending", "accepted", "rejected"]


__all__ = ["FriendRequestResponse", "FriendRequestListResponse", "FriendRequestStatusResponse"]
