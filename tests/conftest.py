# tests/conftest.py
"""
Shared fixtures.

Every test gets its own SQLite file database (foreign keys on), so store
calls made from worker threads and the request thread never share a
connection.
"""

import os

# Set testing mode BEFORE any app imports
os.environ["IS_TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["VAPID_PUBLIC_KEY"] = ""
os.environ["VAPID_PRIVATE_KEY"] = ""

import itertools
from typing import Callable, Iterator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from stalk.api.dependencies.database import get_db
from stalk.database import build_engine, init_db
from stalk.main import app
from stalk.models.push_subscription import PushSubscription
from stalk.models.user import User
from stalk.services.push_notification_service import VapidKeyStore
from tests.helpers import FakePushSender, RecordingTransport, make_key_store

_user_counter = itertools.count(1)


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'stalk_test.db'}")
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> Callable[[], Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    def _make_user(
        username: Optional[str] = None,
        display_name: Optional[str] = None,
        avatar: str = "🙂",
        profile_image: Optional[str] = None,
    ) -> User:
        n = next(_user_counter)
        handle = username or f"user{n}"
        user = User(
            username=handle,
            display_name=display_name or handle.title(),
            avatar=avatar,
            profile_image=profile_image,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def alice(make_user) -> User:
    return make_user("alice", "Alice Anderson", avatar="🦊")


@pytest.fixture
def bob(make_user) -> User:
    return make_user("bob", "Bob Brown", avatar="🐻")


@pytest.fixture
def carol(make_user) -> User:
    return make_user("carol", "Carol Clark", avatar="🐱")


@pytest.fixture
def make_subscription(db) -> Callable[..., PushSubscription]:
    def _make_subscription(user: User, endpoint: str) -> PushSubscription:
        subscription = PushSubscription(
            user_id=user.id,
            endpoint=endpoint,
            p256dh_key="BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQ",
            auth_key="tBHItJI5svbpez7KI4CCXg",
            user_agent="pytest",
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    return _make_subscription


# ============================================================================
# Realtime / push fixtures
# ============================================================================


@pytest.fixture
def fake_push_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def vapid_key_store(tmp_path) -> VapidKeyStore:
    return make_key_store(tmp_path, public_key="test-public-key", private_key="test-private-key")


@pytest.fixture
def unconfigured_key_store(tmp_path) -> VapidKeyStore:
    return make_key_store(tmp_path)


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
def client(session_factory, fake_push_sender, vapid_key_store) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.state.session_factory = session_factory
    app.state.push_sender = fake_push_sender
    app.state.vapid_key_store = vapid_key_store
    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        for name in ("session_factory", "push_sender", "vapid_key_store"):
            if hasattr(app.state, name):
                delattr(app.state, name)


@pytest.fixture
def realtime(client):
    return app.state.realtime


@pytest.fixture
def drain(client, realtime) -> Callable[[], None]:
    """Wait for background work (push fanout, presence writes) on the app loop."""

    def _drain() -> None:
        client.portal.call(realtime.dispatcher.drain)

    return _drain
