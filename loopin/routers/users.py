"""Profile, search and account API routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import (
    AvatarUpdateRequest,
    PostListResponse,
    PostResponse,
    SaveToggleResponse,
    UserListResponse,
    UsernameAvailabilityResponse,
    UserProfileResponse,
    UserSummary,
    UserUpdateRequest,
)
from ..services import (
    delete_user_account,
    get_all_users,
    get_current_user,
    get_saved_posts,
    get_user_profile,
    get_users_by_ids,
    is_username_taken,
    search_users,
    serialize_post,
    toggle_save_post,
    update_user_avatar,
    update_user_profile,
    validate_username,
)

router = APIRouter(prefix="/users", tags=["users"])


def _summaries(users: list[User]) -> UserListResponse:
    return UserListResponse(items=[UserSummary.model_validate(user) for user in users])


@router.get("", response_model=UserListResponse)
def list_users_endpoint(
    ids: list[UUID] | None = Query(default=None),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserListResponse:
    users = get_users_by_ids(db, ids) if ids else get_all_users(db)
    return _summaries(users)


@router.get("/search", response_model=UserListResponse)
def search_users_endpoint(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserListResponse:
    return _summaries(search_users(db, q, max_results=limit, exclude_ids=[current_user.id]))


@router.get("/check-username", response_model=UsernameAvailabilityResponse)
def check_username_endpoint(
    username: str = Query(..., min_length=1),
    db: Session = Depends(get_session),
) -> UsernameAvailabilityResponse:
    try:
        validate_username(username)
    except ValueError as exc:
        return UsernameAvailabilityResponse(username=username, available=False, error=str(exc))
    taken = is_username_taken(db, username)
    return UsernameAvailabilityResponse(
        username=username,
        available=not taken,
        error="Username already in use" if taken else None,
    )


@router.patch("/me", response_model=UserProfileResponse)
def update_me_endpoint(
    payload: UserUpdateRequest,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserProfileResponse:
    user = update_user_profile(db, current_user.id, payload.model_dump(exclude_unset=True))
    return UserProfileResponse.model_validate(user)


@router.put("/me/avatar", response_model=UserProfileResponse)
def update_avatar_endpoint(
    payload: AvatarUpdateRequest,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserProfileResponse:
    return UserProfileResponse.model_validate(update_user_avatar(db, current_user.id, payload.avatar))


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    delete_user_account(db, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me/saved-posts", response_model=PostListResponse)
def saved_posts_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    posts = get_saved_posts(db, current_user.id)
    return PostListResponse(items=[PostResponse(**serialize_post(post)) for post in posts])


@router.post("/me/saved-posts/{post_id}", response_model=SaveToggleResponse)
def toggle_saved_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> SaveToggleResponse:
    return SaveToggleResponse(post_id=post_id, saved=toggle_save_post(db, current_user.id, post_id))


@router.get("/{user_id}", response_model=UserProfileResponse)
def get_user_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserProfileResponse:
    user = get_user_profile(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserProfileResponse.model_validate(user)
