# stalk/schemas/user.py
"""Schemas for the contact list."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ._strict_base import CamelModel


class ContactResponse(CamelModel):
    """Another user as shown in the contact list, with live presence."""

    id: int
    username: str
    display_name: str
    avatar: str
    profile_image: Optional[str] = None
    is_online: bool
    last_active: Optional[datetime] = None
