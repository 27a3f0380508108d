"""Posts, likes and comments."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from ..models import CommentLike, Follow, Post, PostComment, PostLike, User
from .notification_service import notify_quietly
from .persistence import run_read, run_write
from .storage_service import (
    StorageConfigurationError,
    StorageUploadError,
    delete_object_by_url,
    is_data_url,
    upload_data_url,
)

logger = logging.getLogger(__name__)

_POST_LOAD_OPTIONS = (
    selectinload(Post.author),
    selectinload(Post.likes),
    selectinload(Post.comments).selectinload(PostComment.user),
    selectinload(Post.comments).selectinload(PostComment.likes),
)


def serialize_post(post: Post) -> dict[str, Any]:
    """Flatten a post into the shape returned by the API."""

    author = post.author
    return {
        "id": post.id,
        "user_id": post.user_id,
        "username": author.username if author else "",
        "user_profile_image": author.profile_image if author else None,
        "content": post.content or "",
        "media": list(post.media or []),
        "tagged_user_ids": list(post.tagged_user_ids or []),
        "like_user_ids": [like.user_id for like in post.likes],
        "comments": [
            {
                "id": comment.id,
                "post_id": comment.post_id,
                "user_id": comment.user_id,
                "username": comment.user.username if comment.user else "",
                "content": comment.content,
                "like_user_ids": [like.user_id for like in comment.likes],
                "created_at": comment.created_at,
            }
            for comment in sorted(post.comments, key=lambda item: item.created_at)
        ],
        "created_at": post.created_at,
    }


def _upload_media(user_id: UUID, media: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    stored: list[dict[str, Any]] = []
    for item in media:
        entry = {key: value for key, value in dict(item).items() if value is not None}
        url = entry.get("url", "")
        if is_data_url(url):
            try:
                entry["url"] = upload_data_url(url, f"posts/{user_id}")
            except ValueError as exc:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        stored.append(entry)
    return stored


def _get_post_or_404(db: Session, post_id: UUID) -> Post:
    post = run_read(db, lambda: db.get(Post, post_id))
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def add_post(
    db: Session,
    *,
    user_id: UUID,
    content: str,
    media: Sequence[dict[str, Any]] = (),
    tagged_user_ids: Iterable[UUID] = (),
) -> Post:
    author = run_read(db, lambda: db.get(User, user_id))
    if author is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    stored_media = _upload_media(user_id, media)
    tagged = list(dict.fromkeys(tagged_user_ids))
    post = Post(
        user_id=user_id,
        content=content,
        media=stored_media,
        tagged_user_ids=[str(tagged_id) for tagged_id in tagged],
    )

    def _create() -> Post:
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    created = run_write(db, _create, error_detail="Unable to create post", offline_error_msg="Unable to create post")

    if tagged:
        existing = run_read(db, lambda: list(db.scalars(select(User.id).where(User.id.in_(tagged)))))
        for tagged_id in existing:
            if tagged_id == user_id:
                continue
            notify_quietly(
                db,
                tagged_id,
                category="post_tag",
                title="You were tagged in a post",
                message=f"{author.username} tagged you in their post.",
                actor_id=user_id,
                link=f"/chat/profile/{user_id}/posts",
            )
    return created


def _load_posts(db: Session, stmt) -> list[Post]:
    return run_read(db, lambda: list(db.scalars(stmt.options(*_POST_LOAD_OPTIONS))))


def get_feed_posts_for_user(db: Session, user_id: UUID, limit: int = 50) -> list[Post]:
    """Posts by the user and by everyone they follow, newest first."""

    followed = select(Follow.following_id).where(Follow.follower_id == user_id)
    stmt = (
        select(Post)
        .where(or_(Post.user_id == user_id, Post.user_id.in_(followed)))
        .order_by(Post.created_at.desc())
        .limit(limit)
    )
    return _load_posts(db, stmt)


def get_posts_by_user_id(db: Session, user_id: UUID) -> list[Post]:
    return _load_posts(db, select(Post).where(Post.user_id == user_id).order_by(Post.created_at.desc()))


def get_posts_by_ids(db: Session, ids: Iterable[UUID]) -> list[Post]:
    unique_ids = list(dict.fromkeys(ids))
    if not unique_ids:
        return []
    return _load_posts(db, select(Post).where(Post.id.in_(unique_ids)).order_by(Post.created_at.desc()))


def get_post(db: Session, post_id: UUID) -> Post | None:
    return run_read(db, lambda: db.get(Post, post_id))


def toggle_post_like(db: Session, post_id: UUID, user_id: UUID) -> bool:
    """Like or unlike a post; returns whether it is liked afterwards."""

    post = run_read(db, lambda: db.get(Post, post_id))
    if post is None:
        return False

    def _toggle() -> bool:
        existing = db.scalar(select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id))
        if existing is not None:
            db.delete(existing)
            liked = False
        else:
            db.add(PostLike(post_id=post_id, user_id=user_id))
            liked = True
        db.commit()
        return liked

    liked = run_write(db, _toggle, error_detail="Unable to update like")
    if liked and post.user_id != user_id:
        liker = db.get(User, user_id)
        notify_quietly(
            db,
            post.user_id,
            category="post_like",
            title="New Like",
            message=f"{liker.username if liker else 'Someone'} liked your post.",
            actor_id=user_id,
            link=f"/chat/profile/{post.user_id}/posts",
        )
    return liked


def add_comment(db: Session, post_id: UUID, *, user_id: UUID, content: str) -> PostComment:
    post = _get_post_or_404(db, post_id)
    comment = PostComment(post_id=post_id, user_id=user_id, content=content)

    def _create() -> PostComment:
        db.add(comment)
        db.commit()
        db.refresh(comment)
        return comment

    created = run_write(db, _create, error_detail="Unable to add comment")
    if post.user_id != user_id:
        commenter = db.get(User, user_id)
        notify_quietly(
            db,
            post.user_id,
            category="post_comment",
            title="New Comment",
            message=f"{commenter.username if commenter else 'Someone'} commented on your post.",
            actor_id=user_id,
            link=f"/chat/profile/{post.user_id}/posts",
        )
    return created


def toggle_comment_like(db: Session, post_id: UUID, comment_id: UUID, user_id: UUID) -> bool:
    comment = run_read(db, lambda: db.get(PostComment, comment_id))
    if comment is None or comment.post_id != post_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    def _toggle() -> bool:
        existing = db.get(CommentLike, (comment_id, user_id))
        if existing is not None:
            db.delete(existing)
            liked = False
        else:
            db.add(CommentLike(comment_id=comment_id, user_id=user_id))
            liked = True
        db.commit()
        return liked

    return run_write(db, _toggle, error_detail="Unable to update comment like")


def delete_post(db: Session, post_id: UUID, requester_id: UUID) -> None:
    post = _get_post_or_404(db, post_id)
    if post.user_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can delete this post")

    media_urls = [item.get("url", "") for item in (post.media or []) if isinstance(item, dict)]

    def _delete() -> None:
        db.delete(post)
        db.commit()

    run_write(db, _delete, error_detail="Unable to delete post")

    for url in media_urls:
        if not url:
            continue
        try:
            delete_object_by_url(url)
        except (StorageUploadError, StorageConfigurationError) as exc:
            logger.warning("Failed to delete media %s for post %s: %s", url, post_id, exc)


__all__ = [
    "serialize_post",
    "add_post",
    "get_feed_posts_for_user",
    "get_posts_by_user_id",
    "get_posts_by_ids",
    "get_post",
    "toggle_post_like",
    "add_comment",
    "toggle_comment_like",
    "delete_post",
]
