"""
Repository layer for data access.

Repositories wrap SQLAlchemy queries for one entity each and never commit;
services own the transaction boundaries.
"""

from .base_repository import BaseRepository
from .conversation_repository import ConversationRepository
from .message_repository import MessageRepository
from .push_subscription_repository import PushSubscriptionRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "MessageRepository",
    "PushSubscriptionRepository",
    "UserRepository",
]
