"""End-to-end tests for the message pipeline."""

from unittest.mock import patch

import pytest

from stalk.core.exceptions import NotFoundException, StoreException, ValidationException
from stalk.models.conversation import Conversation
from stalk.models.message import Message
from stalk.models.push_subscription import PushSubscription
from stalk.schemas.message import FileInfo, SendMessageRequest
from stalk.services.background import BackgroundDispatcher
from stalk.services.message_service import MessagePipeline, SendState
from stalk.services.push_notification_service import PushNotificationService, PushOutcome
from stalk.services.realtime.presence import PresenceTable
from stalk.services.realtime.router import DeliveryRouter

GONE = "https://push.example.com/bob-old-phone"
LIVE = "https://push.example.com/bob-laptop"


@pytest.fixture
def router(recording_transport) -> DeliveryRouter:
    return DeliveryRouter(PresenceTable(), recording_transport)


@pytest.fixture
def dispatcher() -> BackgroundDispatcher:
    return BackgroundDispatcher()


@pytest.fixture
def pipeline(session_factory, router, dispatcher, fake_push_sender, vapid_key_store) -> MessagePipeline:
    push = PushNotificationService(session_factory, sender=fake_push_sender, key_store=vapid_key_store)
    return MessagePipeline(session_factory, router, push, dispatcher)


def _text(content: str) -> SendMessageRequest:
    return SendMessageRequest(content=content)


@pytest.mark.asyncio
async def test_both_online_delivers_live_without_push(
    pipeline, router, recording_transport, dispatcher, fake_push_sender, alice, bob, make_subscription
):
    make_subscription(bob, LIVE)
    router.join("alice-1", alice.id)
    router.join("bob-1", bob.id)

    result = await pipeline.send_message(alice, bob.id, _text("hi bob"))
    await dispatcher.drain()

    assert result.state is SendState.COMPLETE
    assert result.push_scheduled is False
    [sent] = recording_transport.of_type("alice-1", "message_sent")
    [received] = recording_transport.of_type("bob-1", "message_received")
    assert sent["payload"]["id"] == received["payload"]["id"] == result.message.id
    assert received["payload"]["content"] == "hi bob"
    assert received["payload"]["senderName"] == "Alice Anderson"
    assert fake_push_sender.calls == []


@pytest.mark.asyncio
async def test_offline_recipient_gets_push_and_gone_endpoint_is_pruned(
    pipeline, router, dispatcher, fake_push_sender, db, alice, bob, make_subscription
):
    make_subscription(bob, GONE)
    make_subscription(bob, LIVE)
    fake_push_sender.outcomes[GONE] = PushOutcome.GONE
    router.join("alice-1", alice.id)

    result = await pipeline.send_message(alice, bob.id, _text("are you there?"))
    await dispatcher.drain()

    assert result.push_scheduled is True
    assert result.recipient_deliveries == 0
    assert fake_push_sender.endpoints == sorted([GONE, LIVE])
    db.expire_all()
    assert [s.endpoint for s in db.query(PushSubscription).all()] == [LIVE]


@pytest.mark.asyncio
async def test_each_recipient_device_receives_exactly_once(
    pipeline, router, recording_transport, dispatcher, fake_push_sender, alice, bob
):
    router.join("bob-phone", bob.id)
    router.join("bob-laptop", bob.id)

    result = await pipeline.send_message(alice, bob.id, _text("two devices"))
    await dispatcher.drain()

    assert result.recipient_deliveries == 2
    assert len(recording_transport.of_type("bob-phone", "message_received")) == 1
    assert len(recording_transport.of_type("bob-laptop", "message_received")) == 1
    assert fake_push_sender.calls == []


@pytest.mark.asyncio
async def test_sender_offline_still_persists(pipeline, db, alice, bob):
    result = await pipeline.send_message(alice, bob.id, _text("fire and forget"))

    assert result.sender_deliveries == 0
    db.expire_all()
    assert db.query(Message).count() == 1
    assert db.query(Conversation).one().conversation_key == "alice_bob"


@pytest.mark.asyncio
async def test_file_message(pipeline, alice, bob):
    request = SendMessageRequest(
        message_type="text",
        file_info=FileInfo(path="/uploads/x.zip", original_name="x.zip", size=99, mime_type="application/zip"),
    )

    result = await pipeline.send_message(alice, bob.id, request)

    assert result.message.message_type == "file"
    assert result.message.file_icon == "🗜️"
    assert result.message.content is None


@pytest.mark.parametrize(
    "request_body",
    [
        SendMessageRequest(),
        SendMessageRequest(content="   "),
        SendMessageRequest(
            content="both",
            file_info=FileInfo(path="/u/a.png", original_name="a.png", size=1, mime_type="image/png"),
        ),
    ],
)
@pytest.mark.asyncio
async def test_invalid_content_is_rejected_before_persist(
    pipeline, recording_transport, db, alice, bob, request_body
):
    with pytest.raises(ValidationException):
        await pipeline.send_message(alice, bob.id, request_body)

    assert db.query(Conversation).count() == 0
    assert db.query(Message).count() == 0
    assert all(not frames for frames in recording_transport.frames.values())


@pytest.mark.asyncio
async def test_unknown_recipient(pipeline, db, alice):
    with pytest.raises(NotFoundException):
        await pipeline.send_message(alice, 9999, _text("hello?"))

    assert db.query(Conversation).count() == 0


@pytest.mark.asyncio
async def test_cannot_message_self(pipeline, alice):
    with pytest.raises(ValidationException):
        await pipeline.send_message(alice, alice.id, _text("me"))


@pytest.mark.asyncio
async def test_store_failure_stops_the_pipeline(
    pipeline, router, recording_transport, dispatcher, fake_push_sender, db, alice, bob, make_subscription
):
    make_subscription(bob, LIVE)
    router.join("alice-1", alice.id)

    with patch(
        "stalk.services.message_service.ConversationService.append_message",
        side_effect=StoreException("disk full"),
    ):
        with pytest.raises(StoreException):
            await pipeline.send_message(alice, bob.id, _text("lost"))
    await dispatcher.drain()

    assert recording_transport.of_type("alice-1", "message_sent") == []
    assert fake_push_sender.calls == []
    assert db.query(Message).count() == 0


@pytest.mark.asyncio
async def test_live_delivery_failure_does_not_fail_send(pipeline, router, db, alice, bob):
    router.join("bob-1", bob.id)

    with patch.object(router.transport, "publish", side_effect=RuntimeError("socket gone")):
        result = await pipeline.send_message(alice, bob.id, _text("still stored"))

    assert result.state is SendState.COMPLETE
    assert result.recipient_deliveries == 0
    db.expire_all()
    assert db.query(Message).count() == 1


@pytest.mark.asyncio
async def test_history_is_ordered_and_symmetric(pipeline, alice, bob):
    for text in ("one", "two", "three"):
        await pipeline.send_message(alice, bob.id, _text(text))
    await pipeline.send_message(bob, alice.id, _text("four"))

    from_alice = await pipeline.list_history(alice, bob.id)
    from_bob = await pipeline.list_history(bob, alice.id)

    assert [m.content for m in from_alice] == ["one", "two", "three", "four"]
    assert [m.id for m in from_alice] == [m.id for m in from_bob]


@pytest.mark.asyncio
async def test_history_with_unknown_user(pipeline, alice):
    with pytest.raises(NotFoundException):
        await pipeline.list_history(alice, 4242)
