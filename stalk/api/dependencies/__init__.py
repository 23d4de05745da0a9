"""FastAPI dependency providers."""

from .auth import get_current_user
from .database import get_db
from .realtime import get_message_pipeline, get_push_service, get_realtime

__all__ = [
    "get_current_user",
    "get_db",
    "get_message_pipeline",
    "get_push_service",
    "get_realtime",
]
