# stalk/repositories/conversation_repository.py
"""
Conversation Repository for per-user-pair messaging.

Conversations are created with insert-if-absent semantics so two participants
racing to send the first message both succeed and exactly one row exists.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, cast

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.conversation import Conversation
from .base_repository import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """
    Repository for Conversation entity operations.

    Handles:
    - Insert-if-absent creation keyed by canonical pair key
    - Lookup by key
    - Bumping updated_at when a message lands
    """

    def __init__(self, db: Session):
        """Initialize with database session."""
        super().__init__(db, Conversation)

    def find_by_key(self, conversation_key: str) -> Optional[Conversation]:
        """Find a conversation by its canonical key."""
        return cast(Optional[Conversation], self.find_one_by(conversation_key=conversation_key))

    def insert_if_absent(self, conversation_key: str, participant_a: str, participant_b: str) -> bool:
        """
        Insert the conversation row unless one already exists for the key.

        Returns:
            True if this call inserted the row, False if it already existed
        """
        now = datetime.now(timezone.utc)
        values: Dict[str, Any] = {
            "conversation_key": conversation_key,
            "participant_a": participant_a,
            "participant_b": participant_b,
            "created_at": now,
            "updated_at": now,
        }

        dialect = self.dialect_name
        try:
            if dialect == "sqlite":
                stmt = (
                    sqlite_insert(Conversation)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["conversation_key"])
                )
            elif dialect == "postgresql":
                stmt = (
                    pg_insert(Conversation)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["conversation_key"])
                )
            else:
                return self._insert_with_savepoint(values)

            result = self.db.execute(stmt)
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting conversation {conversation_key}: {str(e)}")
            raise RepositoryException(f"Failed to create conversation: {str(e)}")

    def _insert_with_savepoint(self, values: Dict[str, Any]) -> bool:
        # Generic dialects: a losing racer hits the unique index and rolls back the savepoint only
        try:
            with self.db.begin_nested():
                self.db.add(Conversation(**values))
        except IntegrityError:
            self.logger.debug("Conversation %s already exists", values["conversation_key"])
            return False
        return True

    def touch(self, conversation_key: str, at: Optional[datetime] = None) -> None:
        """Bump updated_at for a conversation."""
        try:
            self.db.execute(
                update(Conversation)
                .where(Conversation.conversation_key == conversation_key)
                .values(updated_at=at or datetime.now(timezone.utc))
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error touching conversation {conversation_key}: {str(e)}")
            raise RepositoryException(f"Failed to update conversation: {str(e)}")
