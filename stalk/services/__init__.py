"""
Service layer for the sTalk backend.

Services own transaction boundaries and translate store failures into
StoreException; the realtime subpackage holds the in-memory delivery core.
"""

from .base import BaseService
from .conversation_service import ConversationService
from .subscription_registry import SubscriptionRegistry

__all__ = [
    "BaseService",
    "ConversationService",
    "SubscriptionRegistry",
]
