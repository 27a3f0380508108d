"""Post, like and comment routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Post, User
from ..schemas import (
    CommentCreate,
    CommentResponse,
    LikeToggleResponse,
    PostCreate,
    PostListResponse,
    PostResponse,
)
from ..services import (
    add_comment,
    add_post,
    delete_post,
    get_current_user,
    get_feed_posts_for_user,
    get_post,
    get_posts_by_ids,
    get_posts_by_user_id,
    serialize_post,
    toggle_comment_like,
    toggle_post_like,
)

router = APIRouter(prefix="/posts", tags=["posts"])


def _post_list(posts: list[Post]) -> PostListResponse:
    return PostListResponse(items=[PostResponse(**serialize_post(post)) for post in posts])


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post_endpoint(
    payload: PostCreate,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    post = add_post(
        db,
        user_id=current_user.id,
        content=payload.content,
        media=[item.model_dump() for item in payload.media],
        tagged_user_ids=payload.tagged_user_ids,
    )
    return PostResponse(**serialize_post(post))


@router.get("", response_model=PostListResponse)
def posts_by_ids_endpoint(
    ids: list[UUID] = Query(...),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    return _post_list(get_posts_by_ids(db, ids))


@router.get("/feed", response_model=PostListResponse)
def feed_endpoint(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    return _post_list(get_feed_posts_for_user(db, current_user.id, limit=limit))


@router.get("/user/{user_id}", response_model=PostListResponse)
def user_posts_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    return _post_list(get_posts_by_user_id(db, user_id))


@router.get("/{post_id}", response_model=PostResponse)
def get_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    post = get_post(db, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return PostResponse(**serialize_post(post))


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    delete_post(db, post_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
def toggle_like_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> LikeToggleResponse:
    return LikeToggleResponse(liked=toggle_post_like(db, post_id, current_user.id))


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def add_comment_endpoint(
    post_id: UUID,
    payload: CommentCreate,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> CommentResponse:
    comment = add_comment(db, post_id, user_id=current_user.id, content=payload.content)
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        username=current_user.username,
        content=comment.content,
        like_user_ids=[],
        created_at=comment.created_at,
    )


@router.post("/{post_id}/comments/{comment_id}/like", response_model=LikeToggleResponse)
def toggle_comment_like_endpoint(
    post_id: UUID,
    comment_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> LikeToggleResponse:
    return LikeToggleResponse(liked=toggle_comment_like(db, post_id, comment_id, current_user.id))
