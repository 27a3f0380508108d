"""SQLAlchemy ORM models for direct and group conversations."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression, func

from loopin.database import Base
from .base import JSONType, utcnow

PARTICIPANT_ROLES = ("admin", "co_admin", "member")


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    is_group = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    name = Column(String(120), nullable=True)
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_message = Column(JSONType, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    is_muted = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    is_pinned = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationParticipant.joined_at",
    )
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        return [member.user_id for member in self.participants]

    @property
    def admin_ids(self) -> list[uuid.UUID]:
        return [member.user_id for member in self.participants if member.role == "admin"]

    @property
    def co_admin_ids(self) -> list[uuid.UUID]:
        return [member.user_id for member in self.participants if member.role == "co_admin"]


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    conversation_id = Column(
        UUID(as_uuid=True), ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    role = Column(Enum(*PARTICIPANT_ROLES, name="participant_role"), nullable=False, default="member", server_default="member")
    unread_count = Column(Integer, nullable=False, default=0, server_default="0")
    joined_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User", back_populates="memberships")


__all__ = ["Conversation", "ConversationParticipant", "PARTICIPANT_ROLES"]
