"""
Token handling for the auth collaborator.

Login and password management live outside this service; it only issues
(for tooling and tests) and verifies bearer tokens carrying ``id`` and
``username`` claims.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from .core.config import secret_or_plain, settings

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a JWT access token.

    Raises:
        PyJWTError: bad signature, expired or malformed token
    """
    payload_raw = jwt.decode(
        token,
        secret_or_plain(settings.secret_key),
        algorithms=[settings.algorithm],
    )
    return cast(Dict[str, Any], payload_raw)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; expected to carry ``id`` and ``username``
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode.update({"exp": expire})

    encoded_jwt = cast(
        str,
        jwt.encode(to_encode, secret_or_plain(settings.secret_key), algorithm=settings.algorithm),
    )
    logger.debug(f"Created access token for user: {data.get('username')}")
    return encoded_jwt


def user_id_from_token(token: Optional[str]) -> Optional[int]:
    """Numeric user id carried by a valid token, or None."""
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.info(f"JWT validation error: {str(e)}")
        return None
    user_id = payload.get("id")
    if isinstance(user_id, bool) or not isinstance(user_id, (int, str)):
        return None
    try:
        return int(user_id)
    except ValueError:
        return None


async def get_current_user_id(token: Optional[str] = Depends(oauth2_scheme_optional)) -> int:
    """
    Dependency resolving the authenticated user id from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = user_id_from_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id
