# stalk/repositories/push_subscription_repository.py
"""Repository for web push subscriptions keyed by endpoint URL."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.push_subscription import PushSubscription
from .base_repository import BaseRepository


class PushSubscriptionRepository(BaseRepository[PushSubscription]):
    """Data access for push subscriptions."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, PushSubscription)

    def upsert(
        self,
        user_id: int,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> Tuple[PushSubscription, bool]:
        """
        Insert a subscription or take over the existing row for the endpoint.

        The owner is overwritten too: the same browser re-subscribing under a
        different logged-in user reassigns the row instead of duplicating it.
        A single INSERT .. ON CONFLICT DO UPDATE, so two first-time subscribes
        of one endpoint never trip the unique index.

        Returns:
            Tuple of (subscription, created)
        """
        now = datetime.now(timezone.utc)
        takeover: Dict[str, Any] = {
            "user_id": user_id,
            "p256dh_key": p256dh_key,
            "auth_key": auth_key,
            "user_agent": user_agent,
            "created_at": now,
        }
        try:
            existed = self._endpoint_exists(endpoint)
            dialect = self.dialect_name
            if dialect in ("sqlite", "postgresql"):
                insert = sqlite_insert if dialect == "sqlite" else pg_insert
                stmt = (
                    insert(PushSubscription)
                    .values(endpoint=endpoint, **takeover)
                    .on_conflict_do_update(index_elements=["endpoint"], set_=takeover)
                )
                self.db.execute(stmt)
            else:
                self._upsert_with_savepoint(endpoint, takeover)

            subscription = (
                self.db.query(PushSubscription)
                .filter(PushSubscription.endpoint == endpoint)
                .populate_existing()
                .one()
            )
            return subscription, not existed
        except SQLAlchemyError as e:
            self.logger.error(f"Error upserting push subscription: {str(e)}")
            raise RepositoryException(f"Failed to save push subscription: {str(e)}")

    def _endpoint_exists(self, endpoint: str) -> bool:
        # Only decides created vs updated for logging; the write itself is atomic
        return (
            self.db.query(PushSubscription.id)
            .filter(PushSubscription.endpoint == endpoint)
            .first()
            is not None
        )

    def _upsert_with_savepoint(self, endpoint: str, takeover: Dict[str, Any]) -> None:
        try:
            with self.db.begin_nested():
                self.db.add(PushSubscription(endpoint=endpoint, **takeover))
        except IntegrityError:
            self.db.execute(
                update(PushSubscription)
                .where(PushSubscription.endpoint == endpoint)
                .values(**takeover)
            )

    def list_for_user(self, user_id: int) -> List[PushSubscription]:
        query = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.created_at.desc(), PushSubscription.id.desc())
        )
        return self._execute_query(query)

    def delete_for_owner(self, endpoint: str, user_id: int) -> bool:
        """Delete the subscription for an endpoint only if user_id owns it."""
        try:
            deleted = (
                self.db.query(PushSubscription)
                .filter(
                    PushSubscription.endpoint == endpoint,
                    PushSubscription.user_id == user_id,
                )
                .delete(synchronize_session=False)
            )
            return bool(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting push subscription: {str(e)}")
            raise RepositoryException(f"Failed to delete push subscription: {str(e)}")

    def delete_many(self, subscription_ids: List[int]) -> int:
        if not subscription_ids:
            return 0
        try:
            deleted = (
                self.db.query(PushSubscription)
                .filter(PushSubscription.id.in_(subscription_ids))
                .delete(synchronize_session=False)
            )
            return int(deleted or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error pruning push subscriptions: {str(e)}")
            raise RepositoryException(f"Failed to prune push subscriptions: {str(e)}")
