"""Initial LoopIn schema.

Revision ID: 20261017_initial_schema
Revises:
Create Date: 2026-10-17
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=True)
_JSON = sa.JSON().with_variant(postgresql.JSONB, "postgresql")


def _user_fk(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, _UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), **kwargs)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("username", sa.String(20), nullable=False),
        sa.Column("full_name", sa.String(150), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column(
            "status",
            sa.Enum("online", "offline", "away", "busy", name="user_status"),
            nullable=False,
            server_default="online",
        ),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("show_currently_playing", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("profile_image", sa.String(1024), nullable=True),
        sa.Column("profile_cover_image", sa.String(1024), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "follows",
        _user_fk("follower_id", nullable=False),
        _user_fk("following_id", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("follower_id", "following_id", name="pk_follows"),
    )

    op.create_table(
        "friend_requests",
        sa.Column("id", _UUID, primary_key=True),
        _user_fk("from_user_id", nullable=False),
        _user_fk("to_user_id", nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "accepted", "rejected", name="friend_request_status"),
            nullable=False,
            server_default="pending",
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("from_user_id", "to_user_id", name="uq_friend_request_pair"),
    )
    op.create_index("ix_friend_requests_from_user_id", "friend_requests", ["from_user_id"])
    op.create_index("ix_friend_requests_to_user_id", "friend_requests", ["to_user_id"])

    op.create_table(
        "blocks",
        _user_fk("blocker_id", nullable=False),
        _user_fk("blocked_id", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("blocker_id", "blocked_id", name="pk_blocks"),
    )

    op.create_table(
        "posts",
        sa.Column("id", _UUID, primary_key=True),
        _user_fk("user_id", nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("media", _JSON, nullable=False),
        sa.Column("tagged_user_ids", _JSON, nullable=False),
        _created_at(),
    )
    op.create_index("ix_posts_user_id", "posts", ["user_id"])

    op.create_table(
        "post_likes",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("post_id", _UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False),
        _created_at(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )
    op.create_index("ix_post_likes_post_id", "post_likes", ["post_id"])
    op.create_index("ix_post_likes_user_id", "post_likes", ["user_id"])

    op.create_table(
        "post_comments",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("post_id", _UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_post_comments_post_id", "post_comments", ["post_id"])
    op.create_index("ix_post_comments_user_id", "post_comments", ["user_id"])

    op.create_table(
        "comment_likes",
        sa.Column("comment_id", _UUID, sa.ForeignKey("post_comments.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("comment_id", "user_id", name="pk_comment_likes"),
    )

    op.create_table(
        "saved_posts",
        _user_fk("user_id", nullable=False),
        sa.Column("post_id", _UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("user_id", "post_id", name="pk_saved_posts"),
    )

    op.create_table(
        "conversations",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("created_by_id", _UUID, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("last_message", _JSON, nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_muted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_conversations_updated_at", "conversations", ["updated_at"])

    op.create_table(
        "conversation_participants",
        sa.Column("conversation_id", _UUID, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False),
        sa.Column(
            "role",
            sa.Enum("admin", "co_admin", "member", name="participant_role"),
            nullable=False,
            server_default="member",
        ),
        sa.Column("unread_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("conversation_id", "user_id", name="pk_conversation_participants"),
    )
    op.create_index("ix_conversation_participants_user_id", "conversation_participants", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("conversation_id", _UUID, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        _user_fk("sender_id", nullable=False),
        sa.Column(
            "type",
            sa.Enum("text", "image", "file", "profile_share", "location_share", name="message_type"),
            nullable=False,
            server_default="text",
        ),
        sa.Column("content", _JSON, nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", _UUID, primary_key=True),
        _user_fk("recipient_id", nullable=False),
        _user_fk("actor_id", nullable=True),
        sa.Column(
            "category",
            sa.Enum(
                "message",
                "follow",
                "system",
                "post_like",
                "post_comment",
                "follow_request",
                "post_tag",
                "message_request",
                name="notification_category",
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(512), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_recipient_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_messages_created_at", table_name="messages")
    op.drop_index("ix_messages_sender_id", table_name="messages")
    op.drop_index("ix_messages_conversation_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_conversation_participants_user_id", table_name="conversation_participants")
    op.drop_table("conversation_participants")
    op.drop_index("ix_conversations_updated_at", table_name="conversations")
    op.drop_table("conversations")
    op.drop_table("saved_posts")
    op.drop_table("comment_likes")
    op.drop_index("ix_post_comments_user_id", table_name="post_comments")
    op.drop_index("ix_post_comments_post_id", table_name="post_comments")
    op.drop_table("post_comments")
    op.drop_index("ix_post_likes_user_id", table_name="post_likes")
    op.drop_index("ix_post_likes_post_id", table_name="post_likes")
    op.drop_table("post_likes")
    op.drop_index("ix_posts_user_id", table_name="posts")
    op.drop_table("posts")
    op.drop_table("blocks")
    op.drop_index("ix_friend_requests_to_user_id", table_name="friend_requests")
    op.drop_index("ix_friend_requests_from_user_id", table_name="friend_requests")
    op.drop_table("friend_requests")
    op.drop_table("follows")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
    for enum_name in ("notification_category", "message_type", "participant_role", "friend_request_status", "user_status"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
