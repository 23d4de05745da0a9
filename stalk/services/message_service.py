# stalk/services/message_service.py
"""
Message Pipeline.

Turns one "send message" action into a durable record, live delivery to the
sender's and recipient's connections, and (for an offline recipient) a push
fanout that runs in the background.

    RECEIVED -> PERSISTED -> DELIVERED -> NOTIFIED -> COMPLETE

Only validation, unknown recipient and store failures reach the caller.
Once the message is persisted the response always carries it, whatever
happens to live delivery or push.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import NotFoundException, ValidationException
from ..database import SessionFactory
from ..models.conversation import canonical_conversation_key
from ..models.user import User
from ..repositories.user_repository import UserRepository
from ..schemas.message import MessageResponse, SendMessageRequest
from .background import BackgroundDispatcher
from .base import BaseService
from .conversation_service import ConversationService, FileReference, MessageContent
from .push_notification_service import PushNotificationService
from .realtime.events import EventType
from .realtime.router import DeliveryRouter


class SendState(str, Enum):
    RECEIVED = "received"
    PERSISTED = "persisted"
    DELIVERED = "delivered"
    NOTIFIED = "notified"
    COMPLETE = "complete"
    REJECTED_BEFORE_PERSIST = "rejected_before_persist"
    FAILED_AT_PERSIST = "failed_at_persist"


@dataclass
class SendResult:
    message: MessageResponse
    state: SendState = SendState.COMPLETE
    sender_deliveries: int = 0
    recipient_deliveries: int = 0
    push_scheduled: bool = False


def content_from_request(request: SendMessageRequest) -> MessageContent:
    """
    Convert the wire request into message content.

    Whitespace-only text counts as no text. The client's messageType hint is
    ignored; the kind follows from which body is present.
    """
    text = request.content if request.content and request.content.strip() else None
    file_ref = None
    if request.file_info is not None:
        info = request.file_info
        file_ref = FileReference(
            path=info.path,
            name=info.original_name,
            size=info.size,
            mime_type=info.mime_type,
            thumbnail_path=info.thumbnail_path,
        )
    content = MessageContent(text=text, file=file_ref)
    content.validate()
    return content


class MessagePipeline:
    """Orchestrates persistence, live delivery and push for one message."""

    def __init__(
        self,
        session_factory: SessionFactory,
        router: DeliveryRouter,
        push_service: PushNotificationService,
        dispatcher: BackgroundDispatcher,
    ) -> None:
        self.session_factory = session_factory
        self.router = router
        self.push_service = push_service
        self.dispatcher = dispatcher
        self.logger = logging.getLogger(self.__class__.__name__)

    @BaseService.measure_operation("send_message")
    async def send_message(
        self, sender: User, recipient_id: int, request: SendMessageRequest
    ) -> SendResult:
        """
        Send a message from sender to the user recipient_id.

        Raises:
            ValidationException: empty/ambiguous content or messaging yourself
            NotFoundException: recipient does not exist
            StoreException: the message could not be stored
        """
        try:
            content = content_from_request(request)
            if recipient_id == sender.id:
                raise ValidationException("Cannot send a message to yourself", code="SELF_MESSAGE")
            recipient = await asyncio.to_thread(self._load_recipient, recipient_id)
        except (ValidationException, NotFoundException) as exc:
            self.logger.info(
                "[PIPELINE] Send rejected: %s",
                exc.message,
                extra={"state": SendState.REJECTED_BEFORE_PERSIST.value, "sender_id": sender.id},
            )
            raise

        try:
            response, push_payload = await asyncio.to_thread(
                self._persist, sender.username, recipient, content
            )
        except Exception:
            self.logger.error(
                "[PIPELINE] Persist failed; nothing delivered",
                extra={"state": SendState.FAILED_AT_PERSIST.value, "sender_id": sender.id},
            )
            raise
        result = SendResult(message=response, state=SendState.PERSISTED)

        wire = response.model_dump(mode="json", by_alias=True)
        result.sender_deliveries = self._deliver(sender.id, EventType.MESSAGE_SENT, wire)
        result.recipient_deliveries = self._deliver(recipient.id, EventType.MESSAGE_RECEIVED, wire)
        result.state = SendState.DELIVERED

        if not self.router.is_online(recipient.id):
            try:
                self.dispatcher.spawn(
                    self.push_service.notify_user(recipient.id, push_payload),
                    name=f"push-message-{response.id}",
                )
                result.push_scheduled = True
            except Exception as exc:
                self.logger.error("[PIPELINE] Could not schedule push: %s", exc)
        result.state = SendState.NOTIFIED

        result.state = SendState.COMPLETE
        self.logger.info(
            "[PIPELINE] Message %s sent",
            response.id,
            extra={
                "chat_id": response.chat_id,
                "sender_deliveries": result.sender_deliveries,
                "recipient_deliveries": result.recipient_deliveries,
                "push_scheduled": result.push_scheduled,
            },
        )
        return result

    def _deliver(self, user_id: int, event_type: EventType, payload: Dict[str, Any]) -> int:
        try:
            return self.router.publish_to_user(user_id, event_type, payload)
        except Exception as exc:
            self.logger.error(
                "[PIPELINE] Live delivery failed: %s",
                exc,
                extra={"user_id": user_id, "event_type": event_type.value},
            )
            return 0

    def _load_recipient(self, recipient_id: int) -> User:
        db = self.session_factory()
        try:
            recipient = UserRepository(db).get_by_id(recipient_id, load_relationships=False)
        finally:
            db.close()
        if recipient is None:
            raise NotFoundException(f"User {recipient_id} not found", code="RECIPIENT_NOT_FOUND")
        return recipient

    def _persist(
        self, sender_handle: str, recipient: User, content: MessageContent
    ) -> Tuple[MessageResponse, Dict[str, Any]]:
        db = self.session_factory()
        try:
            service = ConversationService(db)
            key = service.ensure_conversation(sender_handle, recipient.username)
            message = service.append_message(key, sender_handle, content)
            response = MessageResponse.from_message(message, recipient_id=recipient.id)
            return response, self.push_service.build_message_payload(message)
        finally:
            db.close()

    async def list_history(self, viewer: User, other_user_id: int) -> List[MessageResponse]:
        """Messages between viewer and other_user_id, oldest first."""
        return await asyncio.to_thread(self._history, viewer, other_user_id)

    def _history(self, viewer: User, other_user_id: int) -> List[MessageResponse]:
        db = self.session_factory()
        try:
            other: Optional[User] = UserRepository(db).get_by_id(other_user_id, load_relationships=False)
            if other is None:
                raise NotFoundException(f"User {other_user_id} not found", code="USER_NOT_FOUND")
            key = canonical_conversation_key(viewer.username, other.username)
            messages = ConversationService(db).list_messages(key)
            return [MessageResponse.from_message(m) for m in messages]
        finally:
            db.close()
