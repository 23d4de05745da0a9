# stalk/services/subscription_registry.py
"""Subscription Registry: durable user to push endpoint mapping."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, StoreException
from ..models.push_subscription import PushSubscription
from ..repositories.push_subscription_repository import PushSubscriptionRepository
from .base import BaseService


class SubscriptionRegistry(BaseService):
    """Add, replace, remove and prune web push subscriptions."""

    def __init__(
        self,
        db: Session,
        subscription_repository: Optional[PushSubscriptionRepository] = None,
    ) -> None:
        super().__init__(db)
        self.subscription_repository = subscription_repository or PushSubscriptionRepository(db)

    @BaseService.measure_operation("upsert_subscription")
    def upsert(
        self,
        user_id: int,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """
        Store a push subscription for a user.

        An endpoint already registered (by anyone) is taken over by user_id.
        """
        with self.transaction():
            subscription, created = self.subscription_repository.upsert(
                user_id=user_id,
                endpoint=endpoint,
                p256dh_key=p256dh_key,
                auth_key=auth_key,
                user_agent=user_agent,
            )
        self.logger.info(
            "[PUSH] %s subscription %s for user %s",
            "Created" if created else "Updated",
            subscription.id,
            user_id,
        )
        return subscription

    @BaseService.measure_operation("remove_subscription")
    def remove(self, endpoint: str, user_id: int) -> bool:
        """
        Remove a subscription owned by user_id.

        Returns False when the endpoint is unknown or belongs to someone else.
        """
        with self.transaction():
            return self.subscription_repository.delete_for_owner(endpoint, user_id)

    @BaseService.measure_operation("remove_subscription_by_id")
    def remove_by_id(self, subscription_id: int) -> bool:
        with self.transaction():
            return self.subscription_repository.delete(subscription_id)

    def remove_many(self, subscription_ids: List[int]) -> int:
        with self.transaction():
            return self.subscription_repository.delete_many(subscription_ids)

    @BaseService.measure_operation("list_subscriptions")
    def list_for_user(self, user_id: int) -> List[PushSubscription]:
        """All subscriptions of a user, newest first."""
        try:
            return self.subscription_repository.list_for_user(user_id)
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Failed to list subscriptions for user {user_id}: {str(e)}")
            raise StoreException(f"Database read failed: {str(e)}") from e
