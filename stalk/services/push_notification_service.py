# stalk/services/push_notification_service.py
"""
Push Fanout: best-effort web push delivery to a user's devices.

Delivery never raises to the caller. Each subscription is attempted once,
concurrently; endpoints the provider reports gone (HTTP 404/410) are pruned
from the Subscription Registry, every other failure is logged and kept.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from pywebpush import WebPushException, webpush

from ..core.config import Settings, secret_or_plain, settings
from ..core.constants import DEFAULT_PUSH_BADGE, DEFAULT_PUSH_ICON, PUSH_BODY_PREVIEW_CHARS
from ..database import SessionFactory
from ..models.message import Message
from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService
from .subscription_registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = (404, 410)


class PushOutcome(str, Enum):
    """Classified result of one delivery attempt."""

    DELIVERED = "delivered"
    GONE = "gone"
    FAILED = "failed"


@dataclass(frozen=True)
class VapidCredentials:
    public_key: str
    private_key: str
    subject: str


@dataclass(frozen=True)
class SubscriptionTarget:
    """Detached snapshot of a subscription row, safe to use off the session."""

    id: int
    user_id: int
    endpoint: str
    p256dh_key: str
    auth_key: str


class VapidKeyStore:
    """
    Resolves the VAPID signing keypair.

    Environment settings win; otherwise the JSON files in ``key_files``
    (default: ``Settings.vapid_file_candidates``) are checked. Until keys
    are found the lookup is repeated on every call, so a key file dropped in
    later is picked up without a restart. The degraded-mode warning is logged once.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        key_files: Optional[Sequence[Path]] = None,
    ) -> None:
        self.config = config or settings
        self.key_files: List[Path] = (
            list(key_files) if key_files is not None else self.config.vapid_file_candidates()
        )
        self._credentials: Optional[VapidCredentials] = None
        self._warned = False

    def credentials(self) -> Optional[VapidCredentials]:
        if self._credentials is not None:
            return self._credentials

        public_key = (self.config.vapid_public_key or "").strip()
        private_key = secret_or_plain(self.config.vapid_private_key).strip()
        if not (public_key and private_key):
            public_key, private_key = self._load_from_files()

        if public_key and private_key:
            self._credentials = VapidCredentials(
                public_key=public_key,
                private_key=private_key,
                subject=self.config.vapid_subject,
            )
            logger.info("[PUSH] VAPID keys loaded; push notifications enabled")
            return self._credentials

        if not self._warned:
            logger.warning(
                "[PUSH] VAPID keys not configured; push notifications are disabled",
                extra={"checked_files": [str(p) for p in self.key_files]},
            )
            self._warned = True
        return None

    def _load_from_files(self) -> Tuple[str, str]:
        for path in self.key_files:
            if not path.is_file():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.error("[PUSH] Unreadable VAPID key file %s: %s", path, exc)
                continue
            if not isinstance(data, dict):
                continue
            public_key = str(data.get("publicKey") or "").strip()
            private_key = str(data.get("privateKey") or "").strip()
            if public_key and private_key:
                return public_key, private_key
        return "", ""

    def public_key(self) -> str:
        creds = self.credentials()
        return creds.public_key if creds else ""

    def is_configured(self) -> bool:
        return self.credentials() is not None


class PushSender(Protocol):
    def send(self, target: SubscriptionTarget, payload: str, credentials: VapidCredentials) -> PushOutcome:
        ...


class WebPushSender:
    """Blocking sender backed by pywebpush; run it off the event loop."""

    def __init__(self, ttl: Optional[int] = None, timeout: Optional[float] = None) -> None:
        self.ttl = settings.push_ttl_seconds if ttl is None else ttl
        self.timeout = settings.push_timeout_seconds if timeout is None else timeout

    def send(self, target: SubscriptionTarget, payload: str, credentials: VapidCredentials) -> PushOutcome:
        try:
            webpush(
                subscription_info={
                    "endpoint": target.endpoint,
                    "keys": {
                        "p256dh": target.p256dh_key,
                        "auth": target.auth_key,
                    },
                },
                data=payload,
                vapid_private_key=credentials.private_key,
                # webpush adds aud/exp to the claims dict, so pass a fresh one
                vapid_claims={"sub": credentials.subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
            return PushOutcome.DELIVERED
        except WebPushException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            if status_code in GONE_STATUS_CODES:
                return PushOutcome.GONE
            logger.warning(
                "[PUSH] Provider rejected push: %s",
                exc,
                extra={"subscription_id": target.id, "status_code": status_code},
            )
            return PushOutcome.FAILED
        except Exception as exc:
            logger.error(
                "[PUSH] Push send failed: %s",
                exc,
                extra={"subscription_id": target.id, "error_type": type(exc).__name__},
            )
            return PushOutcome.FAILED


def _empty_counts() -> Dict[str, int]:
    return {"sent": 0, "failed": 0, "expired": 0}


class PushNotificationService:
    """
    Fans a notification out to every push subscription of a user.

    Not bound to a request session: it outlives the request that triggered
    it and opens its own short sessions through ``session_factory``.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        sender: Optional[PushSender] = None,
        key_store: Optional[VapidKeyStore] = None,
    ) -> None:
        self.session_factory = session_factory
        self.sender: PushSender = sender or WebPushSender()
        self.key_store = key_store or VapidKeyStore()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._frontend_base = settings.frontend_url.rstrip("/")

    def is_configured(self) -> bool:
        return self.key_store.is_configured()

    def get_vapid_public_key(self) -> str:
        """Public key for browser subscription; empty string when unconfigured."""
        return self.key_store.public_key()

    def _resolve_asset_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not self._frontend_base:
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._frontend_base}{path}"

    def build_message_payload(self, message: Message) -> Dict[str, Any]:
        """Notification for a new chat message."""
        sender_user = message.sender_user
        sender_name = sender_user.display_name if sender_user else message.sender
        if message.text_body:
            body = message.text_body[:PUSH_BODY_PREVIEW_CHARS]
        elif message.file_name:
            body = f"Sent: {message.file_name}"
        else:
            body = "New message"

        key = message.conversation_key
        return {
            "title": f"{sender_name} • {settings.app_name}",
            "body": body,
            "icon": self._resolve_asset_url(DEFAULT_PUSH_ICON),
            "badge": self._resolve_asset_url(DEFAULT_PUSH_BADGE),
            "tag": f"chat-{key}",
            "data": {
                "chatId": key,
                "sender": message.sender,
                "url": f"/chats/{key}",
            },
        }

    @BaseService.measure_operation("notify_user")
    async def notify_user(self, user_id: int, payload: Dict[str, Any]) -> Dict[str, int]:
        """
        Send payload to all of a user's subscribed devices.

        Returns:
            dict with 'sent', 'failed', 'expired' counts; never raises
        """
        try:
            return await self._fanout(user_id, payload)
        except Exception as exc:
            self.logger.error(
                "[PUSH] Fanout aborted for user %s: %s", user_id, exc, exc_info=True
            )
            return _empty_counts()

    async def _fanout(self, user_id: int, payload: Dict[str, Any]) -> Dict[str, int]:
        credentials = self.key_store.credentials()
        if credentials is None:
            return _empty_counts()

        targets = await asyncio.to_thread(self._load_targets, user_id)
        if not targets:
            self.logger.debug("[PUSH] No subscriptions for user %s", user_id)
            return _empty_counts()

        body = json.dumps(payload)
        outcomes = await asyncio.gather(
            *(self._attempt(target, body, credentials) for target in targets)
        )

        counts = _empty_counts()
        gone_ids: List[int] = []
        for target, outcome in zip(targets, outcomes):
            if outcome is PushOutcome.DELIVERED:
                counts["sent"] += 1
            elif outcome is PushOutcome.GONE:
                counts["expired"] += 1
                gone_ids.append(target.id)
            else:
                counts["failed"] += 1

        if gone_ids:
            pruned = await asyncio.to_thread(self._prune, gone_ids)
            prometheus_metrics.record_push_pruned(pruned)
            self.logger.info(
                "[PUSH] Pruned %s expired subscription(s) for user %s",
                pruned,
                user_id,
                extra={"subscription_ids": gone_ids},
            )

        self.logger.info("[PUSH] Fanout for user %s finished", user_id, extra=counts)
        return counts

    async def _attempt(
        self, target: SubscriptionTarget, body: str, credentials: VapidCredentials
    ) -> PushOutcome:
        try:
            outcome = await asyncio.to_thread(self.sender.send, target, body, credentials)
        except Exception as exc:
            self.logger.error("[PUSH] Sender raised for subscription %s: %s", target.id, exc)
            outcome = PushOutcome.FAILED
        if outcome is PushOutcome.GONE:
            self.logger.info(
                "[PUSH] Subscription gone; scheduling delete",
                extra={"subscription_id": target.id, "user_id": target.user_id},
            )
        prometheus_metrics.record_push_attempt(outcome.value)
        return outcome

    def _load_targets(self, user_id: int) -> List[SubscriptionTarget]:
        db = self.session_factory()
        try:
            subscriptions = SubscriptionRegistry(db).list_for_user(user_id)
            return [
                SubscriptionTarget(
                    id=sub.id,
                    user_id=sub.user_id,
                    endpoint=sub.endpoint,
                    p256dh_key=sub.p256dh_key,
                    auth_key=sub.auth_key,
                )
                for sub in subscriptions
            ]
        finally:
            db.close()

    def _prune(self, subscription_ids: List[int]) -> int:
        db = self.session_factory()
        try:
            return SubscriptionRegistry(db).remove_many(subscription_ids)
        finally:
            db.close()
