"""Persisted notifications with live fan-out to connected clients."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..models import Notification
from ..schemas import NotificationResponse
from .persistence import run_read, run_write
from .realtime import notification_stream

logger = logging.getLogger(__name__)


def add_notification(
    db: Session,
    recipient_id: UUID,
    *,
    category: str,
    title: str,
    message: str,
    actor_id: UUID | None = None,
    link: str | None = None,
) -> Notification:
    """Persist a notification and push it to the recipient's stream."""

    fields: dict[str, Any] = {
        "recipient_id": recipient_id,
        "category": category,
        "title": title,
        "message": message,
        "actor_id": actor_id,
        "link": link,
    }
    notification = Notification(**{key: value for key, value in fields.items() if value is not None})

    def _create() -> Notification:
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    created = run_write(db, _create, error_detail="Unable to create notification")
    _broadcast(
        created.recipient_id,
        {
            "type": "notification.created",
            "notification": NotificationResponse.model_validate(created).model_dump(mode="json"),
        },
    )
    return created


def notify_quietly(db: Session, recipient_id: UUID, **kwargs: Any) -> Notification | None:
    """Send a notification as a side effect; failures are logged, never raised."""

    try:
        return add_notification(db, recipient_id, **kwargs)
    except Exception:
        logger.exception("Failed to send %s notification to %s", kwargs.get("category"), recipient_id)
        db.rollback()
        return None


def get_notifications_for_user(db: Session, user_id: UUID) -> list[Notification]:
    stmt = select(Notification).where(Notification.recipient_id == user_id).order_by(Notification.created_at.desc())
    return run_read(db, lambda: list(db.scalars(stmt)))


def get_unread_notifications_count(db: Session, user_id: UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
    )
    return run_read(db, lambda: int(db.scalar(stmt) or 0))


def mark_notification_as_read(db: Session, user_id: UUID, notification_id: UUID) -> Notification:
    notification = run_read(db, lambda: db.get(Notification, notification_id))
    if notification is None or notification.recipient_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.is_read:
        return notification

    def _mark() -> Notification:
        notification.is_read = True
        db.commit()
        return notification

    return run_write(db, _mark, error_detail="Unable to update notification")


def mark_all_notifications_as_read(db: Session, user_id: UUID) -> int:
    stmt = (
        update(Notification)
        .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )

    def _mark() -> int:
        result = db.execute(stmt)
        db.commit()
        return int(result.rowcount or 0)

    updated = run_write(db, _mark, error_detail="Unable to update notifications")
    _broadcast(user_id, {"type": "notification.read_all"})
    return updated


def mark_notifications_as_read_by_category_and_actor(
    db: Session, user_id: UUID, category: str, actor_id: UUID
) -> int:
    stmt = (
        update(Notification)
        .where(
            Notification.recipient_id == user_id,
            Notification.category == category,
            Notification.actor_id == actor_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )

    def _mark() -> int:
        result = db.execute(stmt)
        db.commit()
        return int(result.rowcount or 0)

    return run_write(db, _mark, error_detail="Unable to update notifications")


def _broadcast(user_id: UUID, payload: dict[str, Any]) -> None:
    notification_stream.publish(str(user_id), payload)


__all__ = [
    "add_notification",
    "notify_quietly",
    "get_notifications_for_user",
    "get_unread_notifications_count",
    "mark_notification_as_read",
    "mark_all_notifications_as_read",
    "mark_notifications_as_read_by_category_and_actor",
]
