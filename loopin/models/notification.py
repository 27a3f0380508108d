"""SQLAlchemy ORM model for user notifications."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression, func

from loopin.database import Base
from .base import utcnow

NOTIFICATION_CATEGORIES = (
    "message",
    "follow",
    "system",
    "post_like",
    "post_comment",
    "follow_request",
    "post_tag",
    "message_request",
)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    category = Column(Enum(*NOTIFICATION_CATEGORIES, name="notification_category"), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(512), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    recipient = relationship("User", foreign_keys=[recipient_id], back_populates="notifications_received")
    actor = relationship("User", foreign_keys=[actor_id])


__all__ = ["Notification", "NOTIFICATION_CATEGORIES"]
