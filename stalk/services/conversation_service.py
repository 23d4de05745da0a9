# stalk/services/conversation_service.py
"""
Conversation Store.

Durable persistence of 1:1 conversations and their messages. Every write is
committed atomically; a failed write leaves nothing behind and surfaces as
StoreException.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import MESSAGE_KIND_FILE, MESSAGE_KIND_TEXT
from ..core.exceptions import RepositoryException, StoreException, ValidationException
from ..models.conversation import canonical_conversation_key
from ..models.message import Message
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.message_repository import MessageRepository
from .base import BaseService

T = TypeVar("T")


@dataclass(frozen=True)
class FileReference:
    """An uploaded file attached to a message."""

    path: str
    name: str
    size: int
    mime_type: str
    thumbnail_path: Optional[str] = None


@dataclass(frozen=True)
class MessageContent:
    """Body of a message: exactly one of text or file."""

    text: Optional[str] = None
    file: Optional[FileReference] = None

    @property
    def kind(self) -> str:
        return MESSAGE_KIND_FILE if self.file is not None else MESSAGE_KIND_TEXT

    def validate(self) -> None:
        if (self.text is None) == (self.file is None):
            raise ValidationException(
                "Message must contain either text or a file, not both",
                code="INVALID_MESSAGE_CONTENT",
            )


class ConversationService(BaseService):
    """Conversation and message persistence."""

    def __init__(
        self,
        db: Session,
        conversation_repository: Optional[ConversationRepository] = None,
        message_repository: Optional[MessageRepository] = None,
    ) -> None:
        super().__init__(db)
        self.conversation_repository = conversation_repository or ConversationRepository(db)
        self.message_repository = message_repository or MessageRepository(db)

    @BaseService.measure_operation("ensure_conversation")
    def ensure_conversation(self, handle_a: str, handle_b: str) -> str:
        """
        Make sure the conversation for the pair exists.

        Idempotent and safe when both participants race on the first message:
        the losing insert is absorbed and the same key is returned.
        """
        key = canonical_conversation_key(handle_a, handle_b)
        participant_a, participant_b = sorted((handle_a, handle_b))
        with self.transaction():
            created = self.conversation_repository.insert_if_absent(key, participant_a, participant_b)
        if created:
            self.logger.info("Created conversation %s", key)
        return key

    @BaseService.measure_operation("append_message")
    def append_message(self, conversation_key: str, sender_handle: str, content: MessageContent) -> Message:
        """
        Persist a message with a server timestamp.

        Returns:
            The stored message with the sender's display fields loaded

        Raises:
            ValidationException: content has neither or both bodies
            StoreException: the write failed; nothing was stored
        """
        content.validate()
        sent_at = datetime.now(timezone.utc)
        values = {
            "conversation_key": conversation_key,
            "sender": sender_handle,
            "kind": content.kind,
            "sent_at": sent_at,
        }
        if content.file is not None:
            values.update(
                file_path=content.file.path,
                file_name=content.file.name,
                file_size=content.file.size,
                file_type=content.file.mime_type,
                thumbnail_path=content.file.thumbnail_path,
            )
        else:
            values["text_body"] = content.text

        # The sender join is loaded before commit so a failed read rolls the insert back
        with self.transaction():
            message = self.message_repository.create(**values)
            self.conversation_repository.touch(conversation_key, at=sent_at)
            stored = self.message_repository.get_with_sender(message.id)
            if stored is None or stored.sender_user is None:
                raise StoreException(f"Sender {sender_handle!r} of message {message.id} not found")
        return stored

    @BaseService.measure_operation("list_messages")
    def list_messages(self, conversation_key: str) -> List[Message]:
        """All messages of a conversation, ascending by (sent_at, id)."""
        return self._read(lambda: self.message_repository.list_for_conversation(conversation_key))

    def _read(self, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Store read failed: {str(e)}")
            raise StoreException(f"Database read failed: {str(e)}") from e
