# stalk/models/user.py
"""
User model.

Users are owned by the authentication collaborator. The realtime core only
reads them (handle, display fields) and keeps the advisory presence columns
roughly in sync; the in-memory presence table is authoritative at runtime.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class User(Base):
    """A chat participant addressed by numeric id and unique handle."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    display_name = Column(String(128), nullable=False)
    avatar = Column(String(8), nullable=False, default="")
    profile_image = Column(String(512), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    # Advisory only; reset to False on startup
    is_online = Column(Boolean, nullable=False, default=False)
    last_active = Column(DateTime(timezone=True), nullable=True)

    push_subscriptions = relationship(
        "PushSubscription",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
