"""Schemas for conversations, messages and group management."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

MessageType = Literal["text", "image", "file", "profile_share", "location_share"]
ParticipantRole = Literal["admin", "co_admin", "member"]


class AttachmentContent(BaseModel):
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    type: Literal["image", "file", "video"]
    text: str | None = None
    size: int | None = Field(default=None, ge=0)


class ProfileShareContent(BaseModel):
    user_id: UUID
    username: str = Field(..., min_length=1)
    full_name: str | None = None


class LocationShareContent(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# Structured payload schema per non-text message type.
MESSAGE_CONTENT_MODELS: dict[str, type[BaseModel]] = {
    "image": AttachmentContent,
    "file": AttachmentContent,
    "profile_share": ProfileShareContent,
    "location_share": LocationShareContent,
}


class ConversationCreate(BaseModel):
    participant_ids: list[UUID] = Field(..., min_length=1)
    is_group: bool = False
    name: str | None = Field(default=None, max_length=120)


class DirectConversationRequest(BaseModel):
    user_id: UUID
    find_only: bool = False


class LastMessagePreview(BaseModel):
    id: UUID | None = None
    content: str
    sender_id: UUID | None = None
    timestamp: datetime | None = None


class ConversationResponse(BaseModel):
    id: UUID
    is_group: bool
    name: str | None = None
    created_by_id: UUID | None = None
    participant_ids: list[UUID]
    admin_ids: list[UUID] = Field(default_factory=list)
    co_admin_ids: list[UUID] = Field(default_factory=list)
    unread_count: int = 0
    last_message: LastMessagePreview | None = None
    last_message_at: datetime | None = None
    is_muted: bool = False
    is_pinned: bool = False
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(BaseModel):
    items: list[ConversationResponse]


class MessageSendRequest(BaseModel):
    content: Any
    message_type: MessageType = "text"


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    sender_id: UUID
    type: MessageType
    content: Any
    is_read: bool
    is_deleted: bool
    deleted_at: datetime | None = None
    created_at: datetime


class MessageListResponse(BaseModel):
    items: list[MessageResponse]


class ConversationSettingsUpdate(BaseModel):
    is_muted: bool | None = None
    is_pinned: bool | None = None
    name: str | None = Field(default=None, max_length=120)


class GroupMembersRequest(BaseModel):
    user_ids: list[UUID] = Field(..., min_length=1)


class MemberRoleUpdate(BaseModel):
    role: ParticipantRole


class SharePostRequest(BaseModel):
    recipient_id: UUID
    post_id: UUID
    note: str | None = Field(default=None, max_length=500)


class QueuedActionResponse(BaseModel):
    status: Literal["queued-offline"] = "queued-offline"


class UnreadCountResponse(BaseModel):
    unread_count: int = 0


__all__ = [
    "MessageType",
    "ParticipantRole",
    "AttachmentContent",
    "ProfileShareContent",
    "LocationShareContent",
    "MESSAGE_CONTENT_MODELS",
    "ConversationCreate",
    "DirectConversationRequest",
    "LastMessagePreview",
    "ConversationResponse",
    "ConversationListResponse",
    "MessageSendRequest",
    "MessageResponse",
    "MessageListResponse",
    "ConversationSettingsUpdate",
    "GroupMembersRequest",
    "MemberRoleUpdate",
    "SharePostRequest",
    "QueuedActionResponse",
    "UnreadCountResponse",
]
