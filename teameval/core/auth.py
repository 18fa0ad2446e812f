# teameval/core/auth.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.config import settings
from teameval.core.exceptions import InactiveUser, UserNotFound
from teameval.database import get_db
from teameval.models.user import Role

reusable_oauth2 = HTTPBearer()


class Identity(BaseModel):
    """Authenticated caller. Role comes from the user row, never from the token."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    return jwt.encode(
        {"sub": str(user_id), "exp": expire},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


async def get_current_identity(
    db: AsyncSession = Depends(get_db),
    token: HTTPAuthorizationCredentials = Depends(reusable_oauth2)
) -> Identity:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise credentials_exception

    user = await repositories.get_user(db, user_id)
    if user is None or not user.is_active:
        raise credentials_exception
    return Identity(user_id=user.id, role=Role(user.role))


async def get_current_admin(
    identity: Identity = Depends(get_current_identity)
) -> Identity:
    if not identity.is_admin:
        raise HTTPException(403, "Admin access required")
    return identity


async def issue_token(db: AsyncSession, user_id: int, expires_minutes: Optional[int] = None) -> str:
    """Token for an existing, active user. Operators get theirs from the CLI."""
    user = await repositories.get_user(db, user_id)
    if user is None:
        raise UserNotFound(user_id)
    if not user.is_active:
        raise InactiveUser(user_id)
    return create_access_token(user.id, expires_minutes)
