# stalk/services/realtime/transport.py
"""
Realtime transport.

``ConnectionHub`` is the in-process implementation: it keeps every open
WebSocket behind an ``OutboundConnection`` whose FIFO queue is drained by a
single writer task, so frames reach each socket in the order they were
enqueued. Enqueueing never awaits, which lets presence updates and the
frames they trigger happen in one step on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

_CLOSE = object()


class FrameSink(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class RealtimeTransport(Protocol):
    """Group-addressed fanout over live connections."""

    def join(self, connection_id: str, group: str) -> None:
        ...

    def leave(self, connection_id: str) -> None:
        ...

    def publish(self, group: str, frame: Dict[str, Any]) -> int:
        ...

    def broadcast_all(self, frame: Dict[str, Any], exclude: Optional[str] = None) -> int:
        ...


class OutboundConnection:
    """One live socket plus its ordered outbound queue."""

    def __init__(
        self,
        connection_id: str,
        sink: FrameSink,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.connection_id = connection_id
        self.sink = sink
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, frame: Dict[str, Any]) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            logger.warning(
                "[REALTIME] Outbound queue full; dropping frame",
                extra={"connection_id": self.connection_id, "event_type": frame.get("type")},
            )
            return False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            # Writer is stuck behind a full queue; drop the backlog
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(_CLOSE)

    async def run_writer(self) -> None:
        """Drain the queue into the socket until closed or the socket fails."""
        while True:
            frame = await self._queue.get()
            if frame is _CLOSE:
                return
            try:
                await self.sink.send_json(frame)
            except Exception as exc:
                logger.info(
                    "[REALTIME] Write failed; stopping writer",
                    extra={"connection_id": self.connection_id, "error": str(exc)},
                )
                self._closed = True
                return


class ConnectionHub:
    """In-process RealtimeTransport over WebSocket connections."""

    def __init__(self) -> None:
        self._connections: Dict[str, OutboundConnection] = {}
        self._groups: Dict[str, Set[str]] = {}
        self._group_of: Dict[str, str] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def attach(self, connection: OutboundConnection) -> None:
        self._connections[connection.connection_id] = connection

    def detach(self, connection_id: str) -> Optional[OutboundConnection]:
        self.leave(connection_id)
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            connection.close()
        return connection

    def get(self, connection_id: str) -> Optional[OutboundConnection]:
        return self._connections.get(connection_id)

    def group_members(self, group: str) -> Set[str]:
        return set(self._groups.get(group, ()))

    def join(self, connection_id: str, group: str) -> None:
        current = self._group_of.get(connection_id)
        if current == group:
            return
        if current is not None:
            self.leave(connection_id)
        self._groups.setdefault(group, set()).add(connection_id)
        self._group_of[connection_id] = group

    def leave(self, connection_id: str) -> None:
        group = self._group_of.pop(connection_id, None)
        if group is None:
            return
        members = self._groups.get(group)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._groups[group]

    def send_to(self, connection_id: str, frame: Dict[str, Any]) -> bool:
        connection = self._connections.get(connection_id)
        return connection.enqueue(frame) if connection is not None else False

    def publish(self, group: str, frame: Dict[str, Any]) -> int:
        delivered = 0
        for connection_id in sorted(self._groups.get(group, ())):
            if self.send_to(connection_id, frame):
                delivered += 1
        return delivered

    def broadcast_all(self, frame: Dict[str, Any], exclude: Optional[str] = None) -> int:
        delivered = 0
        for connection_id, connection in list(self._connections.items()):
            if connection_id == exclude:
                continue
            if connection.enqueue(frame):
                delivered += 1
        return delivered

    def close_all(self) -> List[str]:
        closed = list(self._connections)
        for connection_id in closed:
            self.detach(connection_id)
        return closed
