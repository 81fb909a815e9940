"""Authentication router and caller dependencies."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from app.database import get_db
from app.models import User
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


# ============== Schemas ==============

class UserMeResponse(BaseModel):
    id: int
    email: str
    name: str


# ============== Dependencies ==============

def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Get current user from JWT token (optional)."""
    return AuthService(db).user_from_token(token)


def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Get current user from JWT token, or reject the request."""
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


# ============== Auth Endpoints ==============

@router.get("/me", response_model=UserMeResponse)
def get_me(
    current_user: User = Depends(get_current_user),
):
    """Get current authenticated user info."""
    return UserMeResponse(
        id=current_user.id,
        email=current_user.email or "",
        name=current_user.name or "",
    )
