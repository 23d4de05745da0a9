"""Tests for the advisory presence writes of RealtimeContext."""

import asyncio
import time

import pytest

from stalk.models.user import User
from stalk.services.realtime.context import RealtimeContext


@pytest.fixture
def context(session_factory, fake_push_sender, vapid_key_store) -> RealtimeContext:
    return RealtimeContext.build(
        session_factory, push_sender=fake_push_sender, key_store=vapid_key_store
    )


def _stored_online(session_factory, user_id: int) -> bool:
    db = session_factory()
    try:
        return bool(db.get(User, user_id).is_online)
    finally:
        db.close()


@pytest.mark.asyncio
async def test_presence_column_follows_connect_and_disconnect(context, session_factory, alice):
    context.presence.add_connection(alice.id, "c1")
    context.record_presence(alice.id)
    await context.dispatcher.drain()
    assert _stored_online(session_factory, alice.id) is True

    context.presence.remove_connection("c1")
    context.record_presence(alice.id)
    await context.dispatcher.drain()
    assert _stored_online(session_factory, alice.id) is False


@pytest.mark.asyncio
async def test_quick_reconnect_cycle_ends_offline_even_if_first_write_is_slow(
    context, session_factory, alice, monkeypatch
):
    finished = []
    real_write = context._write_presence

    def slow_first_write(user_id, is_online):
        if not finished and is_online:
            time.sleep(0.1)
        real_write(user_id, is_online)
        finished.append(is_online)

    monkeypatch.setattr(context, "_write_presence", slow_first_write)

    context.presence.add_connection(alice.id, "c1")
    context.record_presence(alice.id)
    # Let the online write start before the user drops
    await asyncio.sleep(0.01)
    context.presence.remove_connection("c1")
    context.record_presence(alice.id)
    await context.dispatcher.drain()

    assert finished == [True, False]
    assert _stored_online(session_factory, alice.id) is False


@pytest.mark.asyncio
async def test_no_presence_writes_after_shutdown(context, alice):
    await context.close()

    context.record_presence(alice.id)

    assert context.dispatcher.pending == 0
