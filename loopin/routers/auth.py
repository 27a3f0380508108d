"""Registration, login and the current-user endpoint."""
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import User
from ..schemas import AuthResponse, LoginRequest, RegisterRequest, UserProfileResponse
from ..services import (
    authenticate_user,
    create_access_token,
    create_user_profile,
    get_current_user,
    send_signup_emails,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_endpoint(
    payload: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_session),
) -> AuthResponse:
    user = create_user_profile(db, email=str(payload.email), username=payload.username, password=payload.password)
    background_tasks.add_task(send_signup_emails, user.email, user.username)
    return AuthResponse(access_token=create_access_token(user.id), user_id=user.id, username=user.username)


@router.post("/login", response_model=AuthResponse)
def login_endpoint(
    payload: LoginRequest,
    db: Session = Depends(get_session),
) -> AuthResponse:
    user = authenticate_user(db, payload.identifier, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return AuthResponse(access_token=create_access_token(user.id), user_id=user.id, username=user.username)


@router.get("/me", response_model=UserProfileResponse)
def me_endpoint(current_user: User = Depends(get_current_user)) -> UserProfileResponse:
    return UserProfileResponse.model_validate(current_user)
