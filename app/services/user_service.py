"""
Staff account management: registration, login, password recovery, email
verification and admin user listing
"""

from sqlalchemy.orm import Session
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from fastapi import HTTPException, status
from datetime import datetime
from typing import Optional, Tuple
import logging

from app.models.user import User
from app.schemas.user import UserCreate, UserLogin, UserUpdate, PasswordChange
from app.auth.auth_handler import AuthHandler, PASSWORD_RESET_TOKEN, EMAIL_VERIFICATION_TOKEN
from app.utils.error_handler import ConflictError, DatabaseError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class UserService:
    """Service for staff account operations"""

    def __init__(self, db: Session):
        self.db = db
        self.auth_handler = AuthHandler()

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise DatabaseError(f"Failed to {action}", e)

    def _get_or_404(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    async def create_user(self, user_data: UserCreate) -> User:
        username, email = user_data.username.lower(), user_data.email.lower()
        existing = self.db.query(User).filter(or_(User.username == username, User.email == email)).first()
        if existing:
            field = "Username" if existing.username == username else "Email"
            raise ConflictError(f"{field} already registered")

        user = User(
            username=username,
            email=email,
            hashed_password=self.auth_handler.get_password_hash(user_data.password),
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            role="user",
            phone_number=user_data.phone_number,
            is_active=True,
            is_verified=False,
        )
        self.db.add(user)
        self._commit("create user account")
        self.db.refresh(user)

        logger.info(f"Created new user: {user.username} ({user.role})")
        return user

    async def authenticate_user(self, login_data: UserLogin) -> Optional[User]:
        """Return the user for valid credentials, None otherwise"""
        user = self.db.query(User).filter(
            or_(User.username == login_data.username_or_email, User.email == login_data.username_or_email)
        ).first()

        if not user:
            logger.warning(f"Login attempt with non-existent user: {login_data.username_or_email}")
            return None

        if not user.is_active:
            logger.warning(f"Login attempt with inactive user: {user.username}")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

        if not self.auth_handler.verify_password(login_data.password, user.hashed_password):
            logger.warning(f"Failed login attempt for user: {user.username}")
            return None

        user.last_login = datetime.utcnow()
        self._commit("record login")
        logger.info(f"Successful login for user: {user.username}")
        return user

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    async def update_user(self, user_id: int, user_data: UserUpdate) -> User:
        user = self._get_or_404(user_id)

        changes = user_data.model_dump(exclude_unset=True)
        if changes.get("email"):
            changes["email"] = changes["email"].lower()
            taken = self.db.query(User).filter(User.email == changes["email"], User.id != user_id).first()
            if taken:
                raise ConflictError("Email already registered by another user")

        for field, value in changes.items():
            setattr(user, field, value)
        user.updated_at = datetime.utcnow()
        self._commit("update user")
        self.db.refresh(user)

        logger.info(f"Updated user: {user.username}")
        return user

    async def change_password(self, user_id: int, password_data: PasswordChange) -> None:
        user = self._get_or_404(user_id)
        if not self.auth_handler.verify_password(password_data.current_password, user.hashed_password):
            raise ValidationError("Current password is incorrect")

        user.hashed_password = self.auth_handler.get_password_hash(password_data.new_password)
        user.updated_at = datetime.utcnow()
        self._commit("change password")
        logger.info(f"Password changed for user: {user.username}")

    async def set_active(self, user_id: int, active: bool) -> User:
        user = self._get_or_404(user_id)
        user.is_active = active
        user.updated_at = datetime.utcnow()
        self._commit("activate user" if active else "deactivate user")
        logger.info(f"{'Activated' if active else 'Deactivated'} user: {user.username}")
        return user

    async def set_role(self, user_id: int, role: str) -> User:
        user = self._get_or_404(user_id)
        user.role = role
        user.updated_at = datetime.utcnow()
        self._commit("change user role")
        logger.info(f"Changed role of user {user.username} to {role}")
        return user

    async def get_active_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower(), User.is_active == True).first()  # noqa: E712

    def create_password_reset_token(self, user: User) -> str:
        # Bound to the current hash so the token stops working once used
        return self.auth_handler.create_action_token(
            user.id, PASSWORD_RESET_TOKEN, self.auth_handler.settings.password_reset_expire_minutes,
            pwd=user.hashed_password[-10:],
        )

    async def reset_password(self, token: str, new_password: str) -> User:
        payload = self.auth_handler.decode_token(token, PASSWORD_RESET_TOKEN)
        user = self.db.query(User).filter(User.id == int(payload["sub"])).first() if payload else None
        if not user or not user.is_active or payload.get("pwd") != user.hashed_password[-10:]:
            raise ValidationError("Invalid or expired reset token")

        user.hashed_password = self.auth_handler.get_password_hash(new_password)
        user.updated_at = datetime.utcnow()
        self._commit("reset password")
        logger.info(f"Password reset for user: {user.username}")
        return user

    def create_verification_token(self, user: User) -> str:
        return self.auth_handler.create_action_token(
            user.id, EMAIL_VERIFICATION_TOKEN, self.auth_handler.settings.email_verification_expire_minutes,
            email=user.email,
        )

    async def verify_email(self, token: str) -> User:
        payload = self.auth_handler.decode_token(token, EMAIL_VERIFICATION_TOKEN)
        user = self.db.query(User).filter(User.id == int(payload["sub"])).first() if payload else None
        if not user or payload.get("email") != user.email:
            raise ValidationError("Invalid or expired verification token")

        if not user.is_verified:
            user.is_verified = True
            user.updated_at = datetime.utcnow()
            self._commit("verify email")
            logger.info(f"Email verified for user: {user.username}")
        return user

    async def ensure_admin(self, username: str, email: str, password: str) -> Tuple[User, bool]:
        """Create the bootstrap admin unless an account with that username exists"""
        user = self.db.query(User).filter(User.username == username.lower()).first()
        if user:
            return user, False

        user = User(
            username=username.lower(),
            email=email.lower(),
            hashed_password=self.auth_handler.get_password_hash(password),
            first_name="Admin",
            last_name="User",
            role="admin",
            is_active=True,
            is_verified=True,
        )
        self.db.add(user)
        self._commit("create admin account")
        self.db.refresh(user)
        logger.info(f"Created bootstrap admin: {user.username}")
        return user, True

    async def get_users_paginated(self, page: int = 1, page_size: int = 10, role: Optional[str] = None,
                                  active_only: bool = True, search: Optional[str] = None) -> tuple[list[User], int]:
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role)
        if active_only:
            query = query.filter(User.is_active == True)  # noqa: E712
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            ))

        total = query.count()
        users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
        return users, total
