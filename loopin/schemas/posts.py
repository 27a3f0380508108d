"""Schemas for posts, likes and comments."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class MediaItem(BaseModel):
    url: str = Field(..., min_length=1)
    type: Literal["image", "video"]
    data_ai_hint: str | None = None


class PostCreate(BaseModel):
    content: str = Field(default="", max_length=5000)
    media: list[MediaItem] = Field(default_factory=list)
    tagged_user_ids: list[UUID] = Field(default_factory=list)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: UUID
    post_id: UUID
    user_id: UUID
    username: str
    content: str
    like_user_ids: list[UUID] = Field(default_factory=list)
    created_at: datetime


class PostResponse(BaseModel):
    id: UUID
    user_id: UUID
    username: str
    user_profile_image: str | None = None
    content: str
    media: list[MediaItem] = Field(default_factory=list)
    tagged_user_ids: list[UUID] = Field(default_factory=list)
    like_user_ids: list[UUID] = Field(default_factory=list)
    comments: list[CommentResponse] = Field(default_factory=list)
    created_at: datetime


class PostListResponse(BaseModel):
    items: list[PostResponse]


class LikeToggleResponse(BaseModel):
    liked: bool


__all__ = [
    "MediaItem",
    "PostCreate",
    "CommentCreate",
    "CommentResponse",
    "PostResponse",
    "PostListResponse",
    "LikeToggleResponse",
]
