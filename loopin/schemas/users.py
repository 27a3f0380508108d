"""Schemas for user profiles and account settings."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

UserStatus = Literal["online", "offline", "away", "busy"]


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    full_name: str | None = None
    profile_image: str | None = None


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    full_name: str | None = None
    email: str | None = None
    bio: str | None = None
    status: UserStatus
    role: str = "user"
    is_private: bool
    show_currently_playing: bool
    profile_image: str | None = None
    profile_cover_image: str | None = None
    follower_ids: list[UUID] = Field(default_factory=list)
    following_ids: list[UUID] = Field(default_factory=list)
    created_at: datetime
    last_active_at: datetime | None = None


class UserUpdateRequest(BaseModel):
    username: str | None = None
    full_name: str | None = Field(default=None, max_length=150)
    bio: str | None = Field(default=None, max_length=500)
    status: UserStatus | None = None
    is_private: bool | None = None
    show_currently_playing: bool | None = None
    profile_image: str | None = None
    profile_cover_image: str | None = None


class AvatarUpdateRequest(BaseModel):
    # A data: URL to upload, an existing URL, or null to remove the avatar.
    avatar: str | None = None


class UsernameAvailabilityResponse(BaseModel):
    username: str
    available: bool
    error: str | None = None


class UserListResponse(BaseModel):
    items: list[UserSummary]


class SaveToggleResponse(BaseModel):
    post_id: UUID
    saved: bool


__all__ = [
    "UserStatus",
    "UserSummary",
    "UserProfileResponse",
    "UserUpdateRequest",
    "AvatarUpdateRequest",
    "UsernameAvailabilityResponse",
    "UserListResponse",
    "SaveToggleResponse",
]
