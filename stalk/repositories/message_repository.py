# stalk/repositories/message_repository.py
"""
Message Repository.

Messages are append-only. Reads always come back ordered by (sent_at, id):
the server timestamp is not unique, the auto-increment id breaks ties.
"""

from typing import List, Optional, cast

from sqlalchemy.orm import Query, Session, joinedload

from ..models.message import Message
from .base_repository import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Data access for chat messages."""

    def __init__(self, db: Session):
        super().__init__(db, Message)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Message.sender_user))

    def get_with_sender(self, message_id: int) -> Optional[Message]:
        """Fetch a message with its sender's display fields loaded."""
        return cast(Optional[Message], self.get_by_id(message_id, load_relationships=True))

    def list_for_conversation(self, conversation_key: str) -> List[Message]:
        """
        List all messages of a conversation.

        Returns:
            Messages ascending by sent_at, then id
        """
        query = (
            self._apply_eager_loading(self.db.query(Message))
            .filter(Message.conversation_key == conversation_key)
            .order_by(Message.sent_at.asc(), Message.id.asc())
        )
        return self._execute_query(query)
