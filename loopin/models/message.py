"""SQLAlchemy ORM model for chat messages."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression, func

from loopin.database import Base
from .base import JSONType, utcnow

MESSAGE_TYPES = ("text", "image", "file", "profile_share", "location_share")


class Message(Base):
    __tablename__ = "messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        UUID(as_uuid=True), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(*MESSAGE_TYPES, name="message_type"), nullable=False, default="text", server_default="text")
    # A plain string for text messages, otherwise a typed object.
    content = Column(JSONType, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", back_populates="sent_messages")


__all__ = ["Message", "MESSAGE_TYPES"]
