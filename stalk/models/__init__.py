"""
SQLAlchemy models.

Importing this package registers every table on ``Base.metadata``.
"""

from .conversation import Conversation
from .message import Message
from .push_subscription import PushSubscription
from .user import User

__all__ = [
    "User",
    "Conversation",
    "Message",
    "PushSubscription",
]
