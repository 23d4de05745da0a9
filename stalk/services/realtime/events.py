# stalk/services/realtime/events.py
"""
Realtime event type definitions and builders.

Every outbound frame follows this structure:
{
    "type": str,           # Event type identifier
    "schema_version": int, # Schema version (currently 1)
    "timestamp": str,      # ISO 8601 timestamp
    "payload": dict        # Event-specific data
}

Inbound client frames are ``{"type": str, "payload": dict}``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class EventType(str, Enum):
    """Server to client event types."""

    MESSAGE_SENT = "message_sent"
    MESSAGE_RECEIVED = "message_received"
    USER_TYPING = "user_typing"
    USER_STATUS_CHANGED = "user_status_changed"
    ROOM_JOINED = "room_joined"
    ERROR = "error"


class ClientEventType(str, Enum):
    """Client to server event types."""

    JOIN_USER_ROOM = "join_user_room"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"


# Current schema version - increment when payload structure changes
SCHEMA_VERSION = 1


def build_event(event_type: EventType, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a properly structured event.

    Args:
        event_type: The type of event
        payload: Event-specific payload data

    Returns:
        Complete event dict ready for a connection queue
    """
    return {
        "type": event_type.value,
        "schema_version": SCHEMA_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }


def build_user_typing_event(user_id: int, user_name: str, is_typing: bool) -> Dict[str, Any]:
    return build_event(
        EventType.USER_TYPING,
        {"userId": user_id, "userName": user_name, "isTyping": is_typing},
    )


def build_user_status_event(user_id: int, is_online: bool) -> Dict[str, Any]:
    return build_event(
        EventType.USER_STATUS_CHANGED,
        {"userId": user_id, "isOnline": is_online},
    )


def build_room_joined_event(user_id: int) -> Dict[str, Any]:
    return build_event(EventType.ROOM_JOINED, {"userId": user_id})


def build_error_event(reason: str) -> Dict[str, Any]:
    return build_event(EventType.ERROR, {"reason": reason})
