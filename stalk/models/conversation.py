# stalk/models/conversation.py
"""
Conversation model for per-user-pair messaging.

Each unordered pair of handles has exactly one conversation, identified by a
canonical key: the two handles sorted and joined. The key is the natural
primary identity; messages reference it directly.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from ..core.constants import CONVERSATION_KEY_SEPARATOR
from ..database import Base


def canonical_conversation_key(handle_a: str, handle_b: str) -> str:
    """
    Derive the canonical key for the unordered pair (handle_a, handle_b).

    Symmetric by construction: canonical_conversation_key(a, b) equals
    canonical_conversation_key(b, a).
    """
    first, second = sorted((handle_a, handle_b))
    return f"{first}{CONVERSATION_KEY_SEPARATOR}{second}"


class Conversation(Base):
    """
    Conversation between two users.

    Attributes:
        id: Surrogate integer primary key
        conversation_key: Canonical pair key (unique)
        participant_a: Lexicographically smaller handle
        participant_b: Lexicographically larger handle
        created_at: When the first message created the conversation
        updated_at: Bumped on every new message
    """

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_key = Column(String(160), unique=True, nullable=False, index=True)
    participant_a = Column(String(64), nullable=False)
    participant_b = Column(String(64), nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.id",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Conversation(key={self.conversation_key})>"
