# stalk/repositories/user_repository.py
"""
User Repository.

Read access to the externally owned user table, plus the advisory presence
columns the realtime layer keeps roughly current.
"""

from datetime import datetime, timezone
from typing import List, Optional, cast

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Data access for users."""

    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_by_username(self, username: str) -> Optional[User]:
        return cast(Optional[User], self.find_one_by(username=username))

    def search_others(self, exclude_user_id: int, search: str = "", limit: int = 200) -> List[User]:
        """Users other than exclude_user_id whose handle or display name contains search."""
        query = self.db.query(User).filter(User.id != exclude_user_id)
        term = (search or "").strip()
        if term:
            pattern = f"%{term}%"
            query = query.filter(or_(User.username.ilike(pattern), User.display_name.ilike(pattern)))
        query = query.order_by(User.display_name.asc(), User.id.asc()).limit(limit)
        return self._execute_query(query)

    def set_presence(self, user_id: int, is_online: bool) -> None:
        try:
            self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(is_online=is_online, last_active=datetime.now(timezone.utc))
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating presence for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to update presence: {str(e)}")

    def mark_all_offline(self) -> int:
        """Reset every advisory online flag; returns the number of rows changed."""
        try:
            result = self.db.execute(
                update(User).where(User.is_online.is_(True)).values(is_online=False)
            )
            return int(result.rowcount or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error resetting presence flags: {str(e)}")
            raise RepositoryException(f"Failed to reset presence: {str(e)}")
