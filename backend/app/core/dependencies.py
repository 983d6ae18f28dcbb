"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
Tokens are issued upstream; here they are only verified and matched to an
active user.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.jwt import decode_access_token
from backend.app.db.session import get_db
from backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def _resolve_user(token: str, db: AsyncSession) -> dict:
    """
    Validate a bearer token and return its payload.

    1. Validates JWT token signature and expiry
    2. Verifies user still exists and is active (real-time check)

    Raises:
        HTTPException: 401 if authentication fails, 403 if the account is inactive
    """
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    # Role comes from the database, not the token, so role changes apply immediately
    payload["role"] = user.role.value
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload containing user information (user_id, role)
    """
    return await _resolve_user(credentials.credentials, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: AsyncSession = Depends(get_db)
) -> Optional[dict]:
    """
    Like get_current_user, but anonymous requests yield None (guest checkout).

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return await _resolve_user(credentials.credentials, db)
