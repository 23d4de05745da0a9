# stalk/services/realtime/router.py
"""
Delivery Router.

Maps outbound events to live connections. Each user has one delivery group
(``user:<id>``) shared by all of that user's devices. Presence transitions
are broadcast to every other connection in the same synchronous step that
mutates the Presence Table.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from ...core.constants import USER_GROUP_PREFIX
from ...monitoring.prometheus_metrics import prometheus_metrics
from .events import EventType, build_event, build_user_status_event, build_user_typing_event
from .presence import PresenceTable
from .transport import RealtimeTransport

logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    return f"{USER_GROUP_PREFIX}{user_id}"


class DeliveryRouter:
    """Routes message, typing and presence events onto the transport."""

    def __init__(self, presence: PresenceTable, transport: RealtimeTransport) -> None:
        self.presence = presence
        self.transport = transport
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_online(self, user_id: int) -> bool:
        return self.presence.is_online(user_id)

    def join(self, connection_id: str, user_id: int) -> bool:
        """
        Put a connection into the user's delivery group.

        A connection already joined as a different user leaves that user
        first. Joining twice as the same user is a no-op.

        Returns:
            True when the user came online with this connection
        """
        current = self.presence.user_for(connection_id)
        if current == user_id:
            return False
        if current is not None:
            self.leave(connection_id)

        became_online = self.presence.add_connection(user_id, connection_id)
        self.transport.join(connection_id, user_group(user_id))
        if became_online:
            self._broadcast(build_user_status_event(user_id, True), exclude=connection_id)
            self.logger.info("[REALTIME] User %s online", user_id)
        self._update_gauges()
        return became_online

    def leave(self, connection_id: str) -> Tuple[Optional[int], bool]:
        """
        Remove a connection from routing; a closed socket is an implicit leave.

        Returns:
            (user_id, became_offline); (None, False) if the connection never joined
        """
        user_id, became_offline = self.presence.remove_connection(connection_id)
        self.transport.leave(connection_id)
        if user_id is not None and became_offline:
            self._broadcast(build_user_status_event(user_id, False), exclude=connection_id)
            self.logger.info("[REALTIME] User %s offline", user_id)
        self._update_gauges()
        return user_id, became_offline

    def publish_to_user(self, user_id: int, event_type: EventType, payload: Dict[str, Any]) -> int:
        """
        Send an event to every live connection of a user.

        Returns:
            Number of connections the event was queued for; 0 when offline
        """
        if not self.presence.is_online(user_id):
            return 0
        delivered = self.transport.publish(user_group(user_id), build_event(event_type, payload))
        prometheus_metrics.record_realtime_event(event_type.value, delivered)
        return delivered

    def publish_typing(
        self,
        user_id: int,
        is_typing: bool,
        user_name: str = "",
        exclude_connection: Optional[str] = None,
    ) -> int:
        """Broadcast a typing indicator to every other connection; nothing is stored."""
        return self._broadcast(
            build_user_typing_event(user_id, user_name, is_typing),
            exclude=exclude_connection,
        )

    def _broadcast(self, frame: Dict[str, Any], exclude: Optional[str] = None) -> int:
        delivered = self.transport.broadcast_all(frame, exclude=exclude)
        prometheus_metrics.record_realtime_event(frame["type"], delivered)
        return delivered

    def _update_gauges(self) -> None:
        prometheus_metrics.set_realtime_gauges(
            connections=self.presence.connection_count,
            online_users=self.presence.online_count,
        )
