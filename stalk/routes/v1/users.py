# stalk/routes/v1/users.py
"""Contact list - API v1."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...api.dependencies.auth import get_current_user
from ...api.dependencies.database import get_db
from ...api.dependencies.realtime import get_realtime
from ...models.user import User
from ...repositories.user_repository import UserRepository
from ...schemas.user import ContactResponse
from ...services.realtime.context import RealtimeContext

router = APIRouter(tags=["users-v1"])


@router.get("", response_model=List[ContactResponse])
def list_contacts(
    search: Optional[str] = Query(default=None, max_length=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    realtime: RealtimeContext = Depends(get_realtime),
) -> List[ContactResponse]:
    """
    Everyone except the caller, online users first.

    Online state comes from live connections, not the stored flag.
    """
    users = UserRepository(db).search_others(current_user.id, search or "")
    contacts = [
        ContactResponse(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            avatar=user.avatar or "",
            profile_image=user.profile_image,
            is_online=realtime.presence.is_online(user.id),
            last_active=user.last_active,
        )
        for user in users
    ]
    contacts.sort(key=lambda c: (not c.is_online, c.display_name.lower()))
    return contacts
