# tests/helpers.py
"""Test doubles and small helpers shared by fixtures and tests."""

from collections import defaultdict
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from stalk.auth import create_access_token
from stalk.core.config import Settings
from stalk.models.user import User
from stalk.services.push_notification_service import (
    PushOutcome,
    SubscriptionTarget,
    VapidCredentials,
    VapidKeyStore,
)


class FakePushSender:
    """Records every attempt; per-endpoint outcome (or exception) defaults to DELIVERED."""

    def __init__(self, outcomes: Optional[Dict[str, Any]] = None) -> None:
        self.outcomes: Dict[str, Any] = dict(outcomes or {})
        self.calls: List[Tuple[SubscriptionTarget, str]] = []
        self._lock = threading.Lock()

    def send(
        self, target: SubscriptionTarget, payload: str, credentials: VapidCredentials
    ) -> PushOutcome:
        with self._lock:
            self.calls.append((target, payload))
        outcome = self.outcomes.get(target.endpoint, PushOutcome.DELIVERED)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def endpoints(self) -> List[str]:
        return sorted(target.endpoint for target, _ in self.calls)


class RecordingTransport:
    """In-memory RealtimeTransport that keeps every frame per connection."""

    def __init__(self) -> None:
        self.connections: set = set()
        self.groups: Dict[str, set] = defaultdict(set)
        self.group_of: Dict[str, str] = {}
        self.frames: Dict[str, List[Dict[str, Any]]] = defaultdict(list)

    def connect(self, connection_id: str) -> None:
        self.connections.add(connection_id)

    def disconnect(self, connection_id: str) -> None:
        self.leave(connection_id)
        self.connections.discard(connection_id)

    def join(self, connection_id: str, group: str) -> None:
        self.leave(connection_id)
        self.connections.add(connection_id)
        self.groups[group].add(connection_id)
        self.group_of[connection_id] = group

    def leave(self, connection_id: str) -> None:
        group = self.group_of.pop(connection_id, None)
        if group is not None:
            self.groups[group].discard(connection_id)

    def publish(self, group: str, frame: Dict[str, Any]) -> int:
        members = sorted(self.groups.get(group, ()))
        for connection_id in members:
            self.frames[connection_id].append(frame)
        return len(members)

    def broadcast_all(self, frame: Dict[str, Any], exclude: Optional[str] = None) -> int:
        delivered = 0
        for connection_id in sorted(self.connections):
            if connection_id == exclude:
                continue
            self.frames[connection_id].append(frame)
            delivered += 1
        return delivered

    def types_for(self, connection_id: str) -> List[str]:
        return [frame["type"] for frame in self.frames[connection_id]]

    def of_type(self, connection_id: str, event_type: str) -> List[Dict[str, Any]]:
        return [frame for frame in self.frames[connection_id] if frame["type"] == event_type]


def make_key_store(tmp_path, public_key: str = "", private_key: str = "") -> VapidKeyStore:
    config = Settings(vapid_public_key=public_key, vapid_private_key=private_key)
    # Only look at the per-test key file, never a developer's real one
    return VapidKeyStore(config, key_files=[tmp_path / "vapid.json"])


def auth_headers_for(user: User) -> Dict[str, str]:
    token = create_access_token({"id": user.id, "username": user.username})
    return {"Authorization": f"Bearer {token}"}


def token_for(user: User) -> str:
    return create_access_token({"id": user.id, "username": user.username})



def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll predicate until it holds; for effects of a socket closing on the server loop."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
