"""Schemas for the block list."""
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class BlockListResponse(BaseModel):
    blocked_user_ids: list[UUID]


class BlockStatusResponse(BaseModel):
    user_id: UUID
    is_blocked: bool


__all__ = ["BlockListResponse", "BlockStatusResponse"]
