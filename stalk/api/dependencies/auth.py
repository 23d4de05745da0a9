# stalk/api/dependencies/auth.py
"""Authentication dependencies."""

import asyncio
import logging

from fastapi import Depends, HTTPException, Request, status

from ...auth import get_current_user_id
from ...models.user import User
from ...repositories.user_repository import UserRepository
from ...services.realtime.context import RealtimeContext
from .realtime import get_realtime

logger = logging.getLogger(__name__)


def load_user(realtime: RealtimeContext, user_id: int) -> User | None:
    """Fetch a user in a short-lived session; the row comes back detached."""
    db = realtime.session_factory()
    try:
        return UserRepository(db).get_by_id(user_id, load_relationships=False)
    finally:
        db.close()


async def get_current_user(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    realtime: RealtimeContext = Depends(get_realtime),
) -> User:
    """
    Resolve the authenticated user row.

    Raises:
        HTTPException: 401 when the token's user no longer exists
    """
    user = await asyncio.to_thread(load_user, realtime, user_id)
    if user is None:
        logger.warning("Token references unknown user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.user_id = user.id
    return user
