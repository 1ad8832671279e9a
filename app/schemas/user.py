"""
Pydantic schemas for staff accounts
"""

from pydantic import BaseModel, Field, validator, EmailStr
from typing import Optional, List
from datetime import datetime
import re

from app.auth.auth_handler import ROLES

NAME_PATTERN = r"^[a-zA-Z\s'-]+$"


def _check_password_strength(v: str) -> str:
    checks = [
        (r'[A-Z]', 'an uppercase letter'),
        (r'[a-z]', 'a lowercase letter'),
        (r'\d', 'a digit'),
        (r'[!@#$%^&*(),.?":{}|<>]', 'a special character'),
    ]
    for pattern, label in checks:
        if not re.search(pattern, v):
            raise ValueError(f'Password must contain at least {label}')
    return v


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    digits = re.sub(r'\D', '', v)
    if not 10 <= len(digits) <= 15:
        raise ValueError('Phone number must be between 10-15 digits')
    return v


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    phone_number: Optional[str] = Field(None, max_length=20)

    @validator('username')
    def validate_username(cls, v):
        if not re.match(r'^[a-zA-Z0-9_-]+$', v):
            raise ValueError('Username can only contain letters, numbers, underscores, and hyphens')
        return v.lower()

    @validator('first_name', 'last_name')
    def validate_names(cls, v):
        if not re.match(NAME_PATTERN, v):
            raise ValueError('Names can only contain letters, spaces, hyphens, and apostrophes')
        return v.strip().title()

    @validator('phone_number')
    def validate_phone_number(cls, v):
        return _check_phone(v)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str

    @validator('password')
    def validate_password(cls, v):
        return _check_password_strength(v)

    @validator('confirm_password')
    def passwords_match(cls, v, values, **kwargs):
        if 'password' in values and v != values['password']:
            raise ValueError('Passwords do not match')
        return v


class UserLogin(BaseModel):
    username_or_email: str
    password: str

    @validator('username_or_email')
    def normalize_login(cls, v):
        v = v.strip().lower()
        if not v:
            raise ValueError('Username or email is required')
        return v


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, max_length=20)

    @validator('first_name', 'last_name')
    def validate_names(cls, v):
        if v is None:
            return v
        if not re.match(NAME_PATTERN, v):
            raise ValueError('Names can only contain letters, spaces, hyphens, and apostrophes')
        return v.strip().title()

    @validator('phone_number')
    def validate_phone_number(cls, v):
        return _check_phone(v)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_new_password: str

    @validator('new_password')
    def validate_new_password(cls, v):
        return _check_password_strength(v)

    @validator('confirm_new_password')
    def passwords_match(cls, v, values, **kwargs):
        if 'new_password' in values and v != values['new_password']:
            raise ValueError('New passwords do not match')
        return v


class PasswordReset(BaseModel):
    token: str
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_new_password: str

    @validator('new_password')
    def validate_new_password(cls, v):
        return _check_password_strength(v)

    @validator('confirm_new_password')
    def passwords_match(cls, v, values, **kwargs):
        if 'new_password' in values and v != values['new_password']:
            raise ValueError('New passwords do not match')
        return v


class EmailRequest(BaseModel):
    """Body of forgot-password and resend-verification"""
    email: EmailStr


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class RoleUpdate(BaseModel):
    role: str

    @validator('role')
    def validate_role(cls, v):
        if v not in ROLES:
            raise ValueError(f'Role must be one of: {", ".join(ROLES)}')
        return v


class UserResponse(UserBase):
    """User as returned by the API, without the password hash"""
    id: int
    role: str
    is_active: bool
    is_verified: bool
    last_login: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
