"""Profiles, username rules, user search and account removal."""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from ..constants import DEFAULT_BIO, USERNAME_MAX_LENGTH, USERNAME_MIN_LENGTH
from ..models import Conversation, ConversationParticipant, Notification, Post, SavedPost, User
from .auth_service import hash_password
from .conversation_service import release_group_membership
from .network import execute_when_online
from .persistence import run_read, run_write
from .storage_service import (
    StorageConfigurationError,
    StorageUploadError,
    delete_object_by_url,
    is_data_url,
    upload_data_url,
)

logger = logging.getLogger(__name__)

_USERNAME_PATTERN = re.compile(r"^[a-z0-9_.]+$")

_UPDATABLE_FIELDS = (
    "username",
    "full_name",
    "bio",
    "status",
    "is_private",
    "show_currently_playing",
    "profile_image",
    "profile_cover_image",
)


def validate_username(name: str) -> str:
    """Return ``name`` unchanged or raise ``ValueError`` describing the problem."""

    if len(name) < USERNAME_MIN_LENGTH:
        raise ValueError(f"Username must be at least {USERNAME_MIN_LENGTH} characters.")
    if len(name) > USERNAME_MAX_LENGTH:
        raise ValueError(f"Username must be no more than {USERNAME_MAX_LENGTH} characters.")
    if name != name.lower():
        raise ValueError("Username must be all lowercase.")
    if " " in name:
        raise ValueError("Username cannot contain spaces.")
    if not _USERNAME_PATTERN.match(name):
        raise ValueError("Username can only contain lowercase letters, numbers, '.', and '_'.")
    return name


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = run_read(db, lambda: db.get(User, user_id))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def is_username_taken(db: Session, username: str, *, exclude_user_id: UUID | None = None) -> bool:
    stmt = select(User.id).where(func.lower(User.username) == username.strip().lower())
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    return run_read(db, lambda: db.scalar(stmt.limit(1))) is not None


def create_user_profile(db: Session, *, email: str, username: str, password: str) -> User:
    """Create a user with the default profile settings."""

    normalized = username.strip().lower()
    try:
        validate_username(normalized)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if is_username_taken(db, normalized):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already in use")
    email_owner = run_read(db, lambda: db.scalar(select(User.id).where(func.lower(User.email) == email.lower())))
    if email_owner is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        username=normalized,
        full_name=username.strip(),
        email=email,
        hashed_password=hash_password(password),
        bio=DEFAULT_BIO,
        status="online",
        is_private=False,
        show_currently_playing=True,
    )

    def _create() -> User:
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    created = run_write(
        db,
        _create,
        error_detail="Unable to register user",
        offline_error_msg="Cannot create user profile: Please check your internet connection",
    )
    logger.info("Created user profile %s", created.id)
    return created


def get_user_profile(db: Session, user_id: UUID) -> User | None:
    return run_read(
        db,
        lambda: db.get(User, user_id),
        offline_error_msg="Failed to get user profile because the backend is offline.",
    )


def update_user_profile(db: Session, user_id: UUID, changes: Mapping[str, Any]) -> User:
    """Apply a partial profile update."""

    user = _get_user_or_404(db, user_id)
    updates = {key: value for key, value in changes.items() if key in _UPDATABLE_FIELDS}

    username = updates.get("username")
    if username is not None and username != user.username:
        try:
            validate_username(username)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        if is_username_taken(db, username, exclude_user_id=user.id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already in use")
    elif "username" in updates:
        updates.pop("username")

    if "profile_image" in updates and not updates["profile_image"]:
        updates["profile_image"] = ""

    def _update() -> User:
        for key, value in updates.items():
            setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return user

    return run_write(
        db,
        _update,
        error_detail="Unable to update profile",
        offline_error_msg="Cannot update profile: Please check your internet connection",
    )


def get_all_users(db: Session) -> list[User]:
    return run_read(db, lambda: list(db.scalars(select(User).order_by(User.username))))


def get_users_by_ids(db: Session, ids: Iterable[UUID]) -> list[User]:
    unique_ids = list(dict.fromkeys(ids))
    if not unique_ids:
        return []
    return run_read(db, lambda: list(db.scalars(select(User).where(User.id.in_(unique_ids)))))


def _search_rank(user: User, term: str) -> tuple[int, str]:
    username = (user.username or "").lower()
    full_name = (user.full_name or "").lower()
    if username == term:
        rank = 0
    elif full_name == term:
        rank = 1
    elif username.startswith(term):
        rank = 2
    elif full_name.startswith(term):
        rank = 3
    else:
        rank = 4
    return rank, username


def search_users(
    db: Session,
    term: str,
    max_results: int = 10,
    exclude_ids: Iterable[UUID] = (),
) -> list[User]:
    """Case-insensitive search across username, full name, email and bio."""

    needle = term.strip().lower()
    if not needle:
        return []
    pattern = f"%{needle}%"
    stmt = select(User).where(
        or_(
            func.lower(User.username).like(pattern),
            func.lower(func.coalesce(User.full_name, "")).like(pattern),
            func.lower(func.coalesce(User.email, "")).like(pattern),
            func.lower(func.coalesce(User.bio, "")).like(pattern),
        )
    )
    excluded = list(exclude_ids)
    if excluded:
        stmt = stmt.where(User.id.notin_(excluded))

    matches = run_read(
        db,
        lambda: list(db.scalars(stmt)),
        offline_error_msg="Unable to search users: Please check your internet connection",
    )
    matches.sort(key=lambda user: _search_rank(user, needle))
    return matches[:max_results]


def toggle_save_post(db: Session, user_id: UUID, post_id: UUID) -> bool:
    """Save or unsave a post; returns whether it is saved afterwards."""

    if run_read(db, lambda: db.get(Post, post_id)) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    def _toggle() -> bool:
        existing = db.get(SavedPost, (user_id, post_id))
        if existing is not None:
            db.delete(existing)
            saved = False
        else:
            db.add(SavedPost(user_id=user_id, post_id=post_id))
            saved = True
        db.commit()
        return saved

    return run_write(db, _toggle, error_detail="Unable to update saved posts")


def get_saved_posts(db: Session, user_id: UUID) -> list[Post]:
    stmt = (
        select(Post)
        .join(SavedPost, SavedPost.post_id == Post.id)
        .where(SavedPost.user_id == user_id)
        .order_by(SavedPost.created_at.desc())
    )
    return run_read(db, lambda: list(db.scalars(stmt)))


def update_user_avatar(db: Session, user_id: UUID, avatar: str | None) -> User:
    """Set or clear the avatar, uploading ``data:`` URLs to storage first."""

    user = _get_user_or_404(db, user_id)
    if avatar and is_data_url(avatar):
        try:
            avatar = upload_data_url(avatar, f"avatars/{user_id}")
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    def _update() -> User:
        user.profile_image = avatar
        db.commit()
        db.refresh(user)
        return user

    updated = run_write(db, _update, error_detail="Unable to update avatar")
    logger.info("Avatar %s for user %s", "updated" if avatar else "removed", user_id)
    return updated


def _remove_media_quietly(urls: Iterable[str]) -> None:
    for url in urls:
        if not url:
            continue
        try:
            delete_object_by_url(url)
        except (StorageUploadError, StorageConfigurationError) as exc:
            logger.warning("Failed to delete media %s: %s", url, exc)


def delete_user_account(db: Session, user_id: UUID) -> None:
    """Remove a user and everything that belongs to them."""

    def _delete() -> None:
        user = _get_user_or_404(db, user_id)

        media_urls = [
            item.get("url", "")
            for post in user.posts
            for item in (post.media or [])
            if isinstance(item, dict)
        ]
        if user.profile_image:
            media_urls.append(user.profile_image)
        _remove_media_quietly(media_urls)

        direct_ids = list(
            db.scalars(
                select(Conversation.id)
                .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
                .where(ConversationParticipant.user_id == user_id, Conversation.is_group.is_(False))
            )
        )
        group_ids = list(
            db.scalars(
                select(Conversation.id)
                .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
                .where(ConversationParticipant.user_id == user_id, Conversation.is_group.is_(True))
            )
        )

        def _commit() -> None:
            for conversation in list(db.scalars(select(Conversation).where(Conversation.id.in_(direct_ids)))):
                db.delete(conversation)
            for conversation in list(db.scalars(select(Conversation).where(Conversation.id.in_(group_ids)))):
                release_group_membership(db, conversation, user_id)
            db.execute(delete(Notification).where(Notification.actor_id == user_id))
            db.delete(user)
            db.commit()

        run_write(db, _commit, error_detail="Unable to delete account")
        logger.info(
            "Deleted account %s (%s direct conversations, %s groups left)", user_id, len(direct_ids), len(group_ids)
        )

    execute_when_online(_delete)


__all__ = [
    "validate_username",
    "is_username_taken",
    "create_user_profile",
    "get_user_profile",
    "update_user_profile",
    "get_all_users",
    "get_users_by_ids",
    "search_users",
    "toggle_save_post",
    "get_saved_posts",
    "update_user_avatar",
    "delete_user_account",
]
