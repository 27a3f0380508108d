"""Direct and group conversations, messages and their offline handling."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable
from uuid import UUID

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..constants import DELETED_MESSAGE_PLACEHOLDER, QUEUED_OFFLINE
from ..models import Conversation, ConversationParticipant, Follow, Message, Post, User
from ..schemas import MESSAGE_CONTENT_MODELS, MessageResponse
from .block_service import is_blocked_either_way
from .network import BackendOfflineError, check_backend_connectivity
from .notification_service import notify_quietly
from .offline_queue import queue_offline_action
from .persistence import run_read, run_write
from .realtime import conversation_stream

logger = logging.getLogger(__name__)

MANAGER_ROLES = frozenset({"admin", "co_admin"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_conversation(conversation: Conversation, viewer_id: UUID | None = None) -> dict[str, Any]:
    unread = 0
    if viewer_id is not None:
        for member in conversation.participants:
            if member.user_id == viewer_id:
                unread = member.unread_count
                break
    return {
        "id": conversation.id,
        "is_group": conversation.is_group,
        "name": conversation.name,
        "created_by_id": conversation.created_by_id,
        "participant_ids": conversation.participant_ids,
        "admin_ids": conversation.admin_ids,
        "co_admin_ids": conversation.co_admin_ids,
        "unread_count": unread,
        "last_message": conversation.last_message,
        "last_message_at": conversation.last_message_at,
        "is_muted": conversation.is_muted,
        "is_pinned": conversation.is_pinned,
        "created_at": conversation.created_at,
        "updated_at": conversation.updated_at,
    }


def validate_message_content(message_type: str, content: Any) -> Any:
    """Check ``content`` against the shape required for ``message_type``."""

    if message_type == "text":
        if not isinstance(content, str) or not content.strip():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Text messages need non-empty string content",
            )
        return content

    model = MESSAGE_CONTENT_MODELS.get(message_type)
    if model is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unsupported message type")
    try:
        parsed = model.model_validate(content)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid {message_type} content",
        ) from exc
    return parsed.model_dump(mode="json", exclude_none=True)


def get_conversation(db: Session, conversation_id: UUID) -> Conversation | None:
    return run_read(db, lambda: db.get(Conversation, conversation_id), offline_error_msg="Failed to fetch conversation")


def _get_conversation_or_404(db: Session, conversation_id: UUID) -> Conversation:
    conversation = get_conversation(db, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


def _membership(conversation: Conversation, user_id: UUID) -> ConversationParticipant | None:
    for member in conversation.participants:
        if member.user_id == user_id:
            return member
    return None


def _require_member(conversation: Conversation, user_id: UUID) -> ConversationParticipant:
    member = _membership(conversation, user_id)
    if member is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant in this conversation")
    return member


def _require_group(conversation: Conversation) -> None:
    if not conversation.is_group:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conversation is not a group")


def _require_role(conversation: Conversation, user_id: UUID, roles: Iterable[str]) -> ConversationParticipant:
    member = _require_member(conversation, user_id)
    if member.role not in set(roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient group permissions")
    return member


def is_participant(db: Session, conversation_id: UUID, user_id: UUID) -> bool:
    return run_read(db, lambda: db.get(ConversationParticipant, (conversation_id, user_id))) is not None


def create_conversation(
    db: Session,
    participant_ids: Iterable[UUID],
    *,
    is_group: bool = False,
    name: str | None = None,
    created_by: UUID | None = None,
    allow_queue: bool = True,
) -> Conversation | str:
    """Create a conversation, or queue it when the backend is unreachable.

    Returns the new conversation, or ``QUEUED_OFFLINE`` when it was deferred.
    """

    members = list(dict.fromkeys(participant_ids))
    if created_by is not None and created_by not in members:
        members.insert(0, created_by)
    if not members:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A conversation needs participants")
    if not is_group and len(members) != 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Direct conversations need exactly two participants"
        )

    if allow_queue and not check_backend_connectivity():
        queue_offline_action(
            "create_conversation",
            {"participant_ids": members, "is_group": is_group, "name": name, "created_by": created_by},
            owner_id=created_by if created_by is not None else members[0],
        )
        return QUEUED_OFFLINE

    known = set(run_read(db, lambda: list(db.scalars(select(User.id).where(User.id.in_(members))))))
    missing = [member for member in members if member not in known]
    if missing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not is_group and is_blocked_either_way(db, members[0], members[1]):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot message this user")

    admin_id = (created_by or members[0]) if is_group else None
    conversation = Conversation(
        is_group=is_group,
        name=name if is_group else None,
        created_by_id=created_by or members[0],
    )
    conversation.participants = [
        ConversationParticipant(user_id=member, role="admin" if member == admin_id else "member")
        for member in members
    ]

    def _create() -> Conversation:
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
        return conversation

    created = run_write(
        db, _create, error_detail="Failed to create conversation", offline_error_msg="Failed to create conversation"
    )
    logger.info("Created %s conversation %s", "group" if is_group else "direct", created.id)

    if not is_group:
        initiator, recipient = members
        if run_read(db, lambda: db.get(Follow, (initiator, recipient))) is None:
            initiator_user = db.get(User, initiator)
            notify_quietly(
                db,
                recipient,
                category="message_request",
                title="New Message Request",
                message=f"{initiator_user.username if initiator_user else 'Someone'} wants to send you a message but doesn't follow you.",
                actor_id=initiator,
                link=f"/chat/conversations/{created.id}",
            )
    return created


def get_user_conversations(db: Session, user_id: UUID) -> list[Conversation]:
    stmt = (
        select(Conversation)
        .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
        .where(ConversationParticipant.user_id == user_id)
        .options(selectinload(Conversation.participants))
        .order_by(Conversation.updated_at.desc())
    )
    return run_read(db, lambda: list(db.scalars(stmt)), offline_error_msg="Failed to fetch conversations")


def find_or_create_direct_conversation(
    db: Session,
    user1: UUID,
    user2: UUID,
    find_only: bool = False,
    *,
    allow_queue: bool = True,
) -> Conversation | str | None:
    if user1 == user2:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot message yourself")
    if is_blocked_either_way(db, user1, user2):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot message this user")

    mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user1)
    theirs = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user2)
    stmt = (
        select(Conversation)
        .where(Conversation.is_group.is_(False), Conversation.id.in_(mine), Conversation.id.in_(theirs))
        .order_by(Conversation.created_at)
        .limit(1)
    )
    existing = run_read(db, lambda: db.scalar(stmt), offline_error_msg="Failed to find or create conversation")
    if existing is not None:
        return existing
    if find_only:
        return None
    return create_conversation(db, [user1, user2], is_group=False, created_by=user1, allow_queue=allow_queue)


def _message_payload(message: Message, event_type: str) -> dict[str, Any]:
    return {
        "type": event_type,
        "conversation_id": str(message.conversation_id),
        "message": MessageResponse.model_validate(message).model_dump(mode="json"),
    }


def send_message(
    db: Session,
    conversation_id: UUID,
    sender_id: UUID,
    content: Any,
    message_type: str = "text",
    allow_queue: bool = True,
) -> Message | str:
    """Store a message and update the conversation's preview and unread counts."""

    normalized = validate_message_content(message_type, content)

    if allow_queue and not check_backend_connectivity():
        queue_offline_action(
            "send_message",
            {
                "conversation_id": conversation_id,
                "sender_id": sender_id,
                "content": normalized,
                "message_type": message_type,
            },
            owner_id=sender_id,
        )
        return QUEUED_OFFLINE

    conversation = _get_conversation_or_404(db, conversation_id)
    _require_member(conversation, sender_id)

    def _send() -> Message:
        now = _utcnow()
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            type=message_type,
            content=normalized,
            created_at=now,
        )
        db.add(message)
        db.flush()
        conversation.last_message = {
            "id": str(message.id),
            "content": normalized if message_type == "text" else f"[{message_type}]",
            "sender_id": str(sender_id),
            "timestamp": now.isoformat(),
        }
        conversation.last_message_at = now
        conversation.updated_at = now
        db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id != sender_id,
            )
            .values(unread_count=ConversationParticipant.unread_count + 1)
        )
        db.commit()
        db.refresh(message)
        return message

    message = run_write(db, _send, error_detail="Failed to send message", offline_error_msg="Failed to send message")
    conversation_stream.publish(str(conversation_id), _message_payload(message, "message.created"))
    return message


def get_conversation_messages(
    db: Session,
    conversation_id: UUID,
    limit: int = 50,
    before: UUID | None = None,
) -> list[Message]:
    """Return up to ``limit`` of the newest messages in ascending order.

    With ``before`` only messages older than that message are considered.
    """

    stmt = select(Message).where(Message.conversation_id == conversation_id)
    if before is not None:
        anchor = run_read(db, lambda: db.get(Message, before))
        if anchor is None or anchor.conversation_id != conversation_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        stmt = stmt.where(
            or_(
                Message.created_at < anchor.created_at,
                and_(Message.created_at == anchor.created_at, Message.id < anchor.id),
            )
        )
    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)

    newest_first = run_read(db, lambda: list(db.scalars(stmt)), offline_error_msg="Failed to fetch messages")
    return list(reversed(newest_first))


def mark_messages_as_read(db: Session, conversation_id: UUID, user_id: UUID) -> bool:
    if not check_backend_connectivity():
        logger.warning("Cannot mark messages as read while offline")
        return False

    member = run_read(db, lambda: db.get(ConversationParticipant, (conversation_id, user_id)))
    if member is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant in this conversation")

    def _mark() -> bool:
        member.unread_count = 0
        db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
        )
        db.commit()
        return True

    return run_write(
        db, _mark, error_detail="Failed to mark messages as read", offline_error_msg="Failed to mark messages as read"
    )


def delete_message(
    db: Session,
    message_id: UUID,
    requester_id: UUID,
    *,
    conversation_id: UUID | None = None,
) -> Message:
    """Soft-delete a message; only its sender may do this.

    When ``conversation_id`` is given the message must belong to it.
    """

    if not check_backend_connectivity():
        raise BackendOfflineError("Cannot delete message while offline")

    message = run_read(db, lambda: db.get(Message, message_id))
    if message is None or (conversation_id is not None and message.conversation_id != conversation_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if message.sender_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the sender can delete this message")

    def _delete() -> Message:
        message.content = DELETED_MESSAGE_PLACEHOLDER
        message.is_deleted = True
        message.deleted_at = _utcnow()
        db.commit()
        db.refresh(message)
        return message

    deleted = run_write(db, _delete, error_detail="Failed to delete message", offline_error_msg="Failed to delete message")
    conversation_stream.publish(str(deleted.conversation_id), _message_payload(deleted, "message.deleted"))
    return deleted


def update_conversation_settings(
    db: Session,
    conversation_id: UUID,
    requester_id: UUID,
    *,
    is_muted: bool | None = None,
    is_pinned: bool | None = None,
    name: str | None = None,
) -> Conversation:
    if not check_backend_connectivity():
        raise BackendOfflineError("Cannot update conversation settings while offline")

    conversation = _get_conversation_or_404(db, conversation_id)
    member = _require_member(conversation, requester_id)
    if name is not None and conversation.is_group and member.role not in MANAGER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only group admins can rename the group")

    def _update() -> Conversation:
        if is_muted is not None:
            conversation.is_muted = is_muted
        if is_pinned is not None:
            conversation.is_pinned = is_pinned
        if name is not None:
            conversation.name = name
        conversation.updated_at = _utcnow()
        db.commit()
        db.refresh(conversation)
        return conversation

    return run_write(
        db,
        _update,
        error_detail="Failed to update conversation settings",
        offline_error_msg="Failed to update conversation settings",
    )


def add_group_members(db: Session, conversation_id: UUID, requester_id: UUID, user_ids: Iterable[UUID]) -> Conversation:
    conversation = _get_conversation_or_404(db, conversation_id)
    _require_group(conversation)
    _require_role(conversation, requester_id, MANAGER_ROLES)

    existing = set(conversation.participant_ids)
    new_ids = [user_id for user_id in dict.fromkeys(user_ids) if user_id not in existing]
    if not new_ids:
        return conversation
    known = set(run_read(db, lambda: list(db.scalars(select(User.id).where(User.id.in_(new_ids))))))
    if len(known) != len(new_ids):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    def _add() -> Conversation:
        for user_id in new_ids:
            conversation.participants.append(ConversationParticipant(user_id=user_id, role="member"))
        conversation.updated_at = _utcnow()
        db.commit()
        db.refresh(conversation)
        return conversation

    return run_write(db, _add, error_detail="Failed to add group members")


def remove_group_member(db: Session, conversation_id: UUID, requester_id: UUID, member_id: UUID) -> Conversation:
    conversation = _get_conversation_or_404(db, conversation_id)
    _require_group(conversation)
    _require_role(conversation, requester_id, {"admin"})
    target = _membership(conversation, member_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not a member of this group")
    if target.role == "admin":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The group admin cannot be removed")

    def _remove() -> Conversation:
        conversation.participants.remove(target)
        conversation.updated_at = _utcnow()
        db.commit()
        db.refresh(conversation)
        return conversation

    return run_write(db, _remove, error_detail="Failed to remove group member")


def update_member_role(
    db: Session, conversation_id: UUID, requester_id: UUID, member_id: UUID, role: str
) -> Conversation:
    """Change a member's role; promoting to admin hands over the admin seat."""

    if role not in {"admin", "co_admin", "member"}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported role")
    conversation = _get_conversation_or_404(db, conversation_id)
    _require_group(conversation)
    requester = _require_role(conversation, requester_id, {"admin"})
    target = _membership(conversation, member_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not a member of this group")
    if target is requester and role != "admin":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Promote another member to admin before stepping down"
        )

    def _update() -> Conversation:
        if role == "admin":
            for member in conversation.participants:
                if member.role == "admin" and member is not target:
                    member.role = "co_admin"
        target.role = role
        conversation.updated_at = _utcnow()
        db.commit()
        db.refresh(conversation)
        return conversation

    return run_write(db, _update, error_detail="Failed to update member role")


def release_group_membership(db: Session, conversation: Conversation, user_id: UUID) -> bool:
    """Drop ``user_id`` from a group without committing.

    A departing admin hands the role to the first co-admin, otherwise to the
    first remaining member. Returns ``False`` when the group was deleted
    because nobody is left.
    """

    leaving = _membership(conversation, user_id)
    if leaving is None:
        return True
    remaining = [member for member in conversation.participants if member is not leaving]
    if not remaining:
        db.delete(conversation)
        return False
    if leaving.role == "admin":
        successor = next((member for member in remaining if member.role == "co_admin"), remaining[0])
        successor.role = "admin"
    conversation.participants.remove(leaving)
    conversation.updated_at = _utcnow()
    return True


def leave_group(db: Session, conversation_id: UUID, user_id: UUID) -> Conversation | None:
    """Leave a group; returns ``None`` when the group was removed as empty."""

    conversation = _get_conversation_or_404(db, conversation_id)
    _require_group(conversation)
    _require_member(conversation, user_id)

    def _leave() -> Conversation | None:
        kept = release_group_membership(db, conversation, user_id)
        db.commit()
        if not kept:
            return None
        db.refresh(conversation)
        return conversation

    return run_write(db, _leave, error_detail="Failed to leave group")


def delete_group(db: Session, conversation_id: UUID, requester_id: UUID) -> None:
    conversation = _get_conversation_or_404(db, conversation_id)
    _require_group(conversation)
    _require_role(conversation, requester_id, {"admin"})

    def _delete() -> None:
        db.delete(conversation)
        db.commit()

    run_write(db, _delete, error_detail="Failed to delete group")
    logger.info("Group %s deleted by %s", conversation_id, requester_id)


def share_post_in_dm(
    db: Session,
    sender_id: UUID,
    recipient_id: UUID,
    post_id: UUID,
    note: str | None = None,
) -> Message:
    """Send a post link to ``recipient_id`` in their direct conversation."""

    post = run_read(db, lambda: db.get(Post, post_id))
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    sender = run_read(db, lambda: db.get(User, sender_id))

    conversation = find_or_create_direct_conversation(db, sender_id, recipient_id, allow_queue=False)
    base_url = get_settings().public_base_url.rstrip("/")
    text = f"Shared a post: {base_url}/chat/profile/{post.user_id}/posts?post={post_id}"
    if note:
        text = f"{note}\n{text}"
    message = send_message(db, conversation.id, sender_id, text, "text", allow_queue=False)

    summary = ""
    if note:
        summary = f' Message: "{note[:50]}{"..." if len(note) > 50 else ""}"'
    notify_quietly(
        db,
        recipient_id,
        category="message",
        title="Post Shared with You",
        message=f"{sender.username if sender else 'Someone'} shared a post with you.{summary}",
        actor_id=sender_id,
        link=f"/chat/conversations/{conversation.id}",
    )
    return message


def get_unread_messages_count(db: Session, user_id: UUID) -> int:
    stmt = select(func.coalesce(func.sum(ConversationParticipant.unread_count), 0)).where(
        ConversationParticipant.user_id == user_id
    )
    return run_read(db, lambda: int(db.scalar(stmt) or 0))


def _as_uuid(value: Any) -> UUID | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def offline_replay_handlers(db: Session) -> dict[str, Callable[[dict[str, Any]], Any]]:
    """Handlers that replay queued conversation actions against ``db``.

    Actions rejected with a client error (for example a sender who has
    since left the conversation) are logged and dropped.
    """

    def _dropping_client_errors(action: str, replay: Callable[[], Any]) -> Any:
        try:
            return replay()
        except HTTPException as exc:
            if exc.status_code >= 500:
                raise
            logger.warning("Dropping queued %s: %s", action, exc.detail)
            return None

    def _create(payload: dict[str, Any]) -> Any:
        return _dropping_client_errors(
            "create_conversation",
            lambda: create_conversation(
                db,
                [_as_uuid(item) for item in payload.get("participant_ids") or []],
                is_group=bool(payload.get("is_group")),
                name=payload.get("name"),
                created_by=_as_uuid(payload.get("created_by")),
                allow_queue=False,
            ),
        )

    def _send(payload: dict[str, Any]) -> Any:
        return _dropping_client_errors(
            "send_message",
            lambda: send_message(
                db,
                _as_uuid(payload["conversation_id"]),
                _as_uuid(payload["sender_id"]),
                payload.get("content"),
                payload.get("message_type") or "text",
                allow_queue=False,
            ),
        )

    return {"create_conversation": _create, "send_message": _send}


__all__ = [
    "serialize_conversation",
    "validate_message_content",
    "get_conversation",
    "is_participant",
    "create_conversation",
    "get_user_conversations",
    "find_or_create_direct_conversation",
    "send_message",
    "get_conversation_messages",
    "mark_messages_as_read",
    "delete_message",
    "update_conversation_settings",
    "add_group_members",
    "remove_group_member",
    "update_member_role",
    "leave_group",
    "release_group_membership",
    "delete_group",
    "share_post_in_dm",
    "get_unread_messages_count",
    "offline_replay_handlers",
]
