# stalk/schemas/message.py
"""Schemas for chat messages."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..core.constants import MAX_TEXT_LENGTH
from ..models.message import Message
from ..utils.file_icons import file_icon_for
from ._strict_base import CamelModel, CamelRequestModel


class FileInfo(CamelRequestModel):
    """Reference to an already uploaded file."""

    path: str = Field(..., min_length=1, max_length=512)
    original_name: str = Field(..., min_length=1, max_length=255)
    size: int = Field(..., ge=0)
    mime_type: str = Field(default="application/octet-stream", max_length=128)
    thumbnail_path: Optional[str] = Field(default=None, max_length=512)


class SendMessageRequest(CamelRequestModel):
    """
    Request to send a message to another user.

    Exactly one of ``content`` or ``file_info`` must be provided; this is
    checked by the message pipeline so that the rejection is a 400.
    """

    content: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH)
    # Client hint only; the stored kind is derived from the body
    message_type: Optional[str] = Field(default=None, max_length=32)
    file_info: Optional[FileInfo] = None


class MessageResponse(CamelModel):
    """Persisted message enriched with sender display fields."""

    id: int
    chat_id: str
    sender: str
    sender_name: Optional[str] = None
    sender_avatar: Optional[str] = None
    sender_profile_image: Optional[str] = None
    content: Optional[str] = None
    message_type: str
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    file_icon: Optional[str] = None
    thumbnail_path: Optional[str] = None
    sent_at: datetime
    read_at: Optional[datetime] = None
    recipient_id: Optional[int] = None

    @classmethod
    def from_message(cls, message: Message, recipient_id: Optional[int] = None) -> "MessageResponse":
        sender_user = message.sender_user
        return cls(
            id=message.id,
            chat_id=message.conversation_key,
            sender=message.sender,
            sender_name=sender_user.display_name if sender_user else None,
            sender_avatar=sender_user.avatar if sender_user else None,
            sender_profile_image=(sender_user.profile_image or None) if sender_user else None,
            content=message.text_body,
            message_type=message.kind,
            file_path=message.file_path,
            file_name=message.file_name,
            file_size=message.file_size,
            file_type=message.file_type,
            file_icon=file_icon_for(message.file_type) if message.file_path else None,
            thumbnail_path=message.thumbnail_path,
            sent_at=message.sent_at,
            read_at=message.read_at,
            recipient_id=recipient_id,
        )
