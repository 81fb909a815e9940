"""Bearer token verification.

Tokens are issued by the identity layer in front of this service; we only
sign tokens ourselves in tests and local tooling.
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models import User


class AuthService:
    """Service for authentication operations."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token."""
        settings = get_settings()
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    @staticmethod
    def decode_token(token: str) -> Optional[dict]:
        """Decode and validate a JWT token. Expired or forged tokens give None."""
        settings = get_settings()
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except JWTError:
            return None

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Get an active user by ID."""
        return (
            self.db.query(User)
            .filter(User.id == user_id, User.is_active.is_(True))
            .first()
        )

    def user_from_token(self, token: Optional[str]) -> Optional[User]:
        """Resolve the caller behind a bearer token, if any."""
        if not token:
            return None
        payload = self.decode_token(token)
        if not payload:
            return None
        user_id = payload.get("sub")
        if not user_id:
            return None
        try:
            return self.get_user_by_id(int(user_id))
        except (TypeError, ValueError):
            return None
