"""
Bearer token verification.

Tokens are issued by the external identity provider; this service only checks
the signature and expiry and reads the claims. The `sub` claim is the stable
subject id that maps to a local user row.
"""

from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.core.clock import utcnow
from eventbooking.core.config import get_settings
from eventbooking.core.logging import get_logger
from eventbooking.db.session import get_db
from eventbooking.services.user_service import resolve_user_id

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token the way the identity provider does. Used by tests and local tooling."""
    settings = get_settings()
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> int:
    """Resolve the bearer token to a local user id, provisioning the user on first sight."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.PyJWTError as e:
        logger.warning("token_rejected", error=str(e))
        raise unauthorized

    subject = claims.get("sub")
    if not subject:
        raise unauthorized

    email = claims.get("email") or ""
    name = claims.get("name") or claims.get("cognito:username") or email
    return await resolve_user_id(db, str(subject), email, name)
