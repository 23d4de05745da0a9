"""
Realtime core: presence, connection transport and delivery routing.

Everything here is in-memory and mutated only from the event loop.
"""

from .context import RealtimeContext
from .presence import PresenceTable
from .router import DeliveryRouter
from .transport import ConnectionHub, OutboundConnection, RealtimeTransport

__all__ = [
    "ConnectionHub",
    "DeliveryRouter",
    "OutboundConnection",
    "PresenceTable",
    "RealtimeContext",
    "RealtimeTransport",
]
