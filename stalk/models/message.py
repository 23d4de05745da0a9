# stalk/models/message.py
"""
Message model for the chat system.

Messages are immutable once stored. Exactly one of the text body or the file
reference is present; the database enforces it with a check constraint.
"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base


class Message(Base):
    """
    A single chat message.

    Attributes:
        id: Auto-incrementing id, monotonic within the store
        conversation_key: Canonical key of the owning conversation
        sender: Handle of the sender
        kind: "text" or "file"
        text_body: Message text (text messages only)
        file_path / file_name / file_size / file_type: File reference (file messages only)
        thumbnail_path: Optional preview image for file messages
        sent_at: Server-assigned timestamp
        read_at: Reserved; not used by the realtime core
    """

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_key = Column(
        String(160),
        ForeignKey("conversations.conversation_key", ondelete="CASCADE"),
        nullable=False,
    )
    sender = Column(
        String(64),
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
    )
    kind = Column(String(16), nullable=False, default="text")
    text_body = Column(Text, nullable=True)
    file_path = Column(String(512), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(128), nullable=True)
    thumbnail_path = Column(String(512), nullable=True)
    sent_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    read_at = Column(DateTime(timezone=True), nullable=True)

    conversation = relationship("Conversation", back_populates="messages")
    sender_user = relationship("User", foreign_keys=[sender], lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "(text_body IS NOT NULL AND file_path IS NULL) "
            "OR (text_body IS NULL AND file_path IS NOT NULL)",
            name="ck_messages_exactly_one_body",
        ),
        CheckConstraint("kind IN ('text', 'file')", name="ck_messages_kind"),
        Index("ix_messages_conversation_sent", "conversation_key", "sent_at", "id"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation={self.conversation_key}, sender={self.sender})>"
