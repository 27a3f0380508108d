"""SQLAlchemy ORM model for application users."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression, func

from loopin.database import Base
from .base import utcnow

USER_STATUSES = ("online", "offline", "away", "busy")


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(20), unique=True, nullable=False, index=True)
    full_name = Column(String(150), nullable=True)
    email = Column(String(255), unique=True, nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="user", server_default="user", index=True)
    bio = Column(String(500), nullable=True)
    status = Column(Enum(*USER_STATUSES, name="user_status"), nullable=False, default="online", server_default="online")
    is_private = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    show_currently_playing = Column(Boolean, nullable=False, default=True, server_default=expression.true())
    profile_image = Column(String(1024), nullable=True)
    profile_cover_image = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)
    last_active_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan", passive_deletes=True)
    follower_relations = relationship(
        "Follow",
        foreign_keys="Follow.following_id",
        back_populates="following",
        cascade="all, delete-orphan",
    )
    following_relations = relationship(
        "Follow",
        foreign_keys="Follow.follower_id",
        back_populates="follower",
        cascade="all, delete-orphan",
    )
    friend_requests_sent = relationship(
        "FriendRequest",
        foreign_keys="FriendRequest.from_user_id",
        back_populates="from_user",
        cascade="all, delete-orphan",
    )
    friend_requests_received = relationship(
        "FriendRequest",
        foreign_keys="FriendRequest.to_user_id",
        back_populates="to_user",
        cascade="all, delete-orphan",
    )
    blocks_made = relationship("Block", foreign_keys="Block.blocker_id", cascade="all, delete-orphan")
    blocks_received = relationship("Block", foreign_keys="Block.blocked_id", cascade="all, delete-orphan")
    saved_posts = relationship("SavedPost", back_populates="user", cascade="all, delete-orphan")
    memberships = relationship("ConversationParticipant", back_populates="user", cascade="all, delete-orphan")
    sent_messages = relationship("Message", back_populates="sender", cascade="all, delete-orphan")
    post_likes = relationship("PostLike", back_populates="user", cascade="all, delete-orphan")
    post_comments = relationship("PostComment", back_populates="user", cascade="all, delete-orphan")
    comment_likes = relationship("CommentLike", back_populates="user", cascade="all, delete-orphan")
    notifications_received = relationship(
        "Notification",
        foreign_keys="Notification.recipient_id",
        back_populates="recipient",
        cascade="all, delete-orphan",
    )

    @property
    def follower_ids(self) -> list[uuid.UUID]:
        return [relation.follower_id for relation in self.follower_relations]

    @property
    def following_ids(self) -> list[uuid.UUID]:
        return [relation.following_id for relation in self.following_relations]

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"User(id={self.id!s}, username={self.username!r})"


__all__ = ["User", "USER_STATUSES"]
