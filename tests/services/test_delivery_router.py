"""Tests for the Delivery Router over a recording transport."""

import pytest

from stalk.services.realtime.events import EventType
from stalk.services.realtime.presence import PresenceTable
from stalk.services.realtime.router import DeliveryRouter, user_group


@pytest.fixture
def router(recording_transport) -> DeliveryRouter:
    return DeliveryRouter(PresenceTable(), recording_transport)


def test_first_join_broadcasts_online_to_others(router, recording_transport):
    recording_transport.connect("observer")

    assert router.join("c1", 1) is True

    [frame] = recording_transport.of_type("observer", "user_status_changed")
    assert frame["payload"] == {"userId": 1, "isOnline": True}
    assert recording_transport.of_type("c1", "user_status_changed") == []


def test_second_device_does_not_rebroadcast(router, recording_transport):
    recording_transport.connect("observer")
    router.join("c1", 1)

    assert router.join("c2", 1) is False

    assert len(recording_transport.of_type("observer", "user_status_changed")) == 1


def test_last_leave_broadcasts_offline(router, recording_transport):
    recording_transport.connect("observer")
    router.join("c1", 1)
    router.join("c2", 1)

    assert router.leave("c1") == (1, False)
    assert router.leave("c2") == (1, True)

    frames = recording_transport.of_type("observer", "user_status_changed")
    assert [f["payload"]["isOnline"] for f in frames] == [True, False]
    assert router.is_online(1) is False


def test_leave_without_join_is_harmless(router, recording_transport):
    assert router.leave("ghost") == (None, False)


def test_publish_to_offline_user_is_noop(router, recording_transport):
    delivered = router.publish_to_user(42, EventType.MESSAGE_RECEIVED, {"id": 1})

    assert delivered == 0
    assert all(not frames for frames in recording_transport.frames.values())


def test_publish_reaches_every_device(router, recording_transport):
    router.join("phone", 1)
    router.join("laptop", 1)
    router.join("other", 2)

    delivered = router.publish_to_user(1, EventType.MESSAGE_RECEIVED, {"id": 5})

    assert delivered == 2
    assert len(recording_transport.of_type("phone", "message_received")) == 1
    assert len(recording_transport.of_type("laptop", "message_received")) == 1
    assert recording_transport.of_type("other", "message_received") == []


def test_typing_order_is_preserved(router, recording_transport):
    router.join("sender", 1)
    router.join("receiver", 2)

    router.publish_typing(1, True, user_name="Alice", exclude_connection="sender")
    router.publish_typing(1, False, user_name="Alice", exclude_connection="sender")

    typing = recording_transport.of_type("receiver", "user_typing")
    assert [f["payload"]["isTyping"] for f in typing] == [True, False]
    assert typing[0]["payload"]["userName"] == "Alice"
    assert recording_transport.of_type("sender", "user_typing") == []


def test_rejoin_as_other_user_leaves_previous_group(router, recording_transport):
    recording_transport.connect("observer")
    router.join("c1", 1)

    router.join("c1", 2)

    assert router.is_online(1) is False
    assert router.is_online(2) is True
    assert recording_transport.group_of["c1"] == user_group(2)
    statuses = [
        (f["payload"]["userId"], f["payload"]["isOnline"])
        for f in recording_transport.of_type("observer", "user_status_changed")
    ]
    assert statuses == [(1, True), (1, False), (2, True)]


def test_joining_twice_is_idempotent(router, recording_transport):
    router.join("c1", 1)

    assert router.join("c1", 1) is False
    assert router.presence.connection_count == 1
