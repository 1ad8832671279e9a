"""
Staff authentication and account management endpoints
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging
import math

from app.config import Settings, get_settings
from app.database import get_db
from app.schemas.user import (
    UserCreate, UserLogin, UserUpdate, PasswordChange, PasswordReset, EmailRequest,
    RefreshTokenRequest, RoleUpdate, UserResponse, TokenResponse, UserListResponse
)
from app.models.user import User
from app.services.email_service import EmailDispatcher, get_email_dispatcher
from app.services.user_service import UserService
from app.auth.auth_handler import AuthHandler, REFRESH_TOKEN, get_current_user, admin_required
from app.utils.error_handler import ValidationError
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_list(users, total, page, page_size) -> UserListResponse:
    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


def _token_response(user: User, settings: Settings) -> TokenResponse:
    handler = AuthHandler(settings)
    access_token = handler.create_access_token(
        data={"sub": str(user.id), "username": user.username, "role": user.role, "email": user.email}
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=handler.create_refresh_token(user.id),
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


def _queue_verification_email(background_tasks: BackgroundTasks, service: UserService, user: User,
                              dispatcher: EmailDispatcher, settings: Settings) -> None:
    link = settings.account_link("verify-email", service.create_verification_token(user))
    background_tasks.add_task(dispatcher.send_email_verification, user.email, user.full_name, link)


@router.post("/signup", response_model=UserResponse, status_code=201)
@limiter.limit("5/minute")
async def signup(
    request: Request,
    user_data: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """Register a staff account with the basic role; admins grant other roles"""
    service = UserService(db)
    user = await service.create_user(user_data)
    _queue_verification_email(background_tasks, service, user, dispatcher, settings)
    return user


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    login_data: UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Authenticate and return a bearer token"""
    user = await UserService(db).authenticate_user(login_data)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username/email or password"
        )

    return _token_response(user, settings)


@router.post("/refresh-token", response_model=TokenResponse)
@limiter.limit("20/minute")
async def refresh_token(
    request: Request,
    token_data: RefreshTokenRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Exchange a refresh token for a new token pair"""
    payload = AuthHandler(settings).verify_token(token_data.refresh_token, REFRESH_TOKEN)
    user = await UserService(db).get_user_by_id(int(payload["sub"]))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _token_response(user, settings)


@router.post("/forgot-password")
@limiter.limit("3/minute")
async def forgot_password(
    request: Request,
    email_data: EmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """Email a reset link; the answer is the same whether or not the account exists"""
    service = UserService(db)
    user = await service.get_active_by_email(email_data.email)
    if user:
        link = settings.account_link("reset-password", service.create_password_reset_token(user))
        background_tasks.add_task(dispatcher.send_password_reset, user.email, user.full_name, link)
    else:
        logger.info(f"Password reset requested for unknown email: {email_data.email}")
    return {"message": "If the email is registered, a reset link has been sent"}


@router.post("/reset-password")
@limiter.limit("5/minute")
async def reset_password(request: Request, reset_data: PasswordReset, db: Session = Depends(get_db)):
    await UserService(db).reset_password(reset_data.token, reset_data.new_password)
    return {"message": "Password has been reset"}


@router.get("/verify-email/{token}", response_model=UserResponse)
@limiter.limit("10/minute")
async def verify_email(request: Request, token: str, db: Session = Depends(get_db)):
    return await UserService(db).verify_email(token)


@router.post("/resend-verification")
@limiter.limit("3/minute")
async def resend_verification(
    request: Request,
    email_data: EmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    settings: Settings = Depends(get_settings),
):
    service = UserService(db)
    user = await service.get_active_by_email(email_data.email)
    if user and not user.is_verified:
        _queue_verification_email(background_tasks, service, user, dispatcher, settings)
    return {"message": "If the email is registered and unverified, a verification link has been sent"}


@router.get("/me", response_model=UserResponse)
@limiter.limit("30/minute")
async def get_current_user_info(
    request: Request,
    current_user: dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = await UserService(db).get_user_by_id(int(current_user["user_id"]))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.put("/me", response_model=UserResponse)
@limiter.limit("10/minute")
async def update_current_user(
    request: Request,
    user_data: UserUpdate,
    current_user: dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return await UserService(db).update_user(int(current_user["user_id"]), user_data)


@router.post("/change-password")
@limiter.limit("5/minute")
async def change_password(
    request: Request,
    password_data: PasswordChange,
    current_user: dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    await UserService(db).change_password(int(current_user["user_id"]), password_data)
    return {"message": "Password changed successfully"}


@router.post("/logout")
@limiter.limit("30/minute")
async def logout(request: Request, current_user: dict = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy"""
    logger.info(f"User logged out: {current_user['username']}")
    return {"message": "Successfully logged out"}


# Admin endpoints
@router.get("/users", response_model=UserListResponse)
@limiter.limit("20/minute")
async def get_users(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    role: Optional[str] = None,
    active_only: bool = True,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    users, total = await UserService(db).get_users_paginated(page, page_size, role, active_only)
    return _user_list(users, total, page, page_size)


@router.get("/users/search", response_model=UserListResponse)
@limiter.limit("20/minute")
async def search_users(
    request: Request,
    q: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    if len(q.strip()) < 2:
        raise ValidationError("Search term must be at least 2 characters")
    users, total = await UserService(db).get_users_paginated(
        page, page_size, active_only=False, search=q.strip()
    )
    return _user_list(users, total, page, page_size)


@router.post("/users/{user_id}/deactivate")
@limiter.limit("10/minute")
async def deactivate_user(
    request: Request,
    user_id: int,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    if int(current_user["user_id"]) == user_id:
        raise ValidationError("Cannot deactivate your own account")
    await UserService(db).set_active(user_id, False)
    logger.info(f"Admin {current_user['username']} deactivated user ID: {user_id}")
    return {"message": "User deactivated successfully"}


@router.post("/users/{user_id}/activate")
@limiter.limit("10/minute")
async def activate_user(
    request: Request,
    user_id: int,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    await UserService(db).set_active(user_id, True)
    logger.info(f"Admin {current_user['username']} activated user ID: {user_id}")
    return {"message": "User activated successfully"}


@router.put("/users/{user_id}/role", response_model=UserResponse)
@limiter.limit("10/minute")
async def change_user_role(
    request: Request,
    user_id: int,
    role_data: RoleUpdate,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    if int(current_user["user_id"]) == user_id:
        raise ValidationError("Cannot change your own role")
    user = await UserService(db).set_role(user_id, role_data.role)
    logger.info(f"Admin {current_user['username']} set role of user ID {user_id} to {role_data.role}")
    return user
