"""
JWT authentication and role checks for staff accounts
"""

from datetime import datetime, timedelta
from typing import Optional
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from jose import JWTError, jwt

from app.config import Settings, get_settings

ALGORITHM = "HS256"
ROLES = ["user", "moderator", "admin"]

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
PASSWORD_RESET_TOKEN = "password_reset"
EMAIL_VERIFICATION_TOKEN = "email_verification"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=4)
security = HTTPBearer()


class AuthHandler:
    """Password hashing and token issue/verification"""

    def __init__(self, settings: Optional[Settings] = None):
        self.pwd_context = pwd_context
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def _encode(self, data: dict, token_type: str, expires_delta: timedelta) -> str:
        to_encode = data.copy()
        to_encode.update({"exp": datetime.utcnow() + expires_delta, "type": token_type})
        return jwt.encode(to_encode, self.settings.secret_key, algorithm=ALGORITHM)

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None):
        """Create a JWT access token"""
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.settings.access_token_expire_minutes)
        return self._encode(data, ACCESS_TOKEN, expires_delta)

    def create_refresh_token(self, user_id: int) -> str:
        """Long-lived token that can only be exchanged for a new access token"""
        return self._encode(
            {"sub": str(user_id)}, REFRESH_TOKEN, timedelta(days=self.settings.refresh_token_expire_days)
        )

    def create_action_token(self, user_id: int, token_type: str, expires_minutes: int, **claims) -> str:
        """Single-purpose token for emailed links (password reset, email verification)"""
        return self._encode(dict(claims, sub=str(user_id)), token_type, timedelta(minutes=expires_minutes))

    def decode_token(self, token: str, token_type: str) -> Optional[dict]:
        """Claims of a valid token of the given type, None otherwise"""
        try:
            payload = jwt.decode(token, self.settings.secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if payload.get("type", ACCESS_TOKEN) != token_type or payload.get("sub") is None:
            return None
        return payload

    def verify_token(self, token: str, token_type: str = ACCESS_TOKEN) -> dict:
        """Verify and decode a JWT token"""
        payload = self.decode_token(token, token_type)
        if payload is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return payload


auth_handler = AuthHandler()


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Dependency to get current authenticated user"""
    payload = auth_handler.verify_token(credentials.credentials)

    return {
        "user_id": payload["sub"],
        "username": payload.get("username"),
        "role": payload.get("role", "user"),
        "email": payload.get("email")
    }


class RoleChecker:
    """Allow only the listed roles"""

    def __init__(self, allowed_roles: list):
        self.allowed_roles = allowed_roles

    def __call__(self, user: dict = Depends(get_current_user)):
        if user.get("role", "user") not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted"
            )
        return user


admin_required = RoleChecker(["admin"])
