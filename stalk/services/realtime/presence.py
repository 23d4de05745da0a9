# stalk/services/realtime/presence.py
"""
Presence Table.

Which users currently hold live connections. A user is online iff at least
one connection is registered for them. Starts empty on every process start;
the durable ``users.is_online`` column is only an advisory mirror.
"""

from typing import Dict, FrozenSet, List, Optional, Set, Tuple


class PresenceTable:
    """userId -> {connectionId} with a reverse connectionId -> userId index."""

    def __init__(self) -> None:
        self._by_user: Dict[int, Set[str]] = {}
        self._by_connection: Dict[str, int] = {}

    def add_connection(self, user_id: int, connection_id: str) -> bool:
        """
        Register a live connection for a user.

        Returns:
            True when this is the user's first connection (offline -> online)

        Raises:
            ValueError: connection_id is already registered to another user
        """
        owner = self._by_connection.get(connection_id)
        if owner is not None and owner != user_id:
            raise ValueError(f"Connection {connection_id} already belongs to user {owner}")

        connections = self._by_user.setdefault(user_id, set())
        became_online = not connections
        connections.add(connection_id)
        self._by_connection[connection_id] = user_id
        return became_online

    def remove_connection(self, connection_id: str) -> Tuple[Optional[int], bool]:
        """
        Drop a connection.

        Returns:
            (user_id, became_offline); (None, False) for an unknown connection
        """
        user_id = self._by_connection.pop(connection_id, None)
        if user_id is None:
            return None, False

        connections = self._by_user.get(user_id)
        if connections is None:
            return user_id, False
        connections.discard(connection_id)
        if connections:
            return user_id, False
        del self._by_user[user_id]
        return user_id, True

    def is_online(self, user_id: int) -> bool:
        return bool(self._by_user.get(user_id))

    def user_for(self, connection_id: str) -> Optional[int]:
        return self._by_connection.get(connection_id)

    def connections_for(self, user_id: int) -> FrozenSet[str]:
        return frozenset(self._by_user.get(user_id, ()))

    def online_user_ids(self) -> List[int]:
        return list(self._by_user)

    @property
    def online_count(self) -> int:
        return len(self._by_user)

    @property
    def connection_count(self) -> int:
        return len(self._by_connection)

    def clear(self) -> None:
        self._by_user.clear()
        self._by_connection.clear()
