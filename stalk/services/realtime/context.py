# stalk/services/realtime/context.py
"""
Process-wide realtime state, built in the application lifespan.

Routes reach it through ``request.app.state.realtime`` via the dependencies
in ``stalk.api.dependencies.realtime``; nothing here is a module global.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Dict, Optional

from ...database import SessionFactory
from ...repositories.user_repository import UserRepository
from ..background import BackgroundDispatcher
from ..push_notification_service import PushNotificationService, PushSender, VapidKeyStore
from .presence import PresenceTable
from .router import DeliveryRouter
from .transport import ConnectionHub

logger = logging.getLogger(__name__)


@dataclass
class RealtimeContext:
    session_factory: SessionFactory
    presence: PresenceTable
    hub: ConnectionHub
    router: DeliveryRouter
    dispatcher: BackgroundDispatcher
    push_service: PushNotificationService
    _presence_writes: Dict[int, "asyncio.Task[None]"] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def build(
        cls,
        session_factory: SessionFactory,
        push_sender: Optional[PushSender] = None,
        key_store: Optional[VapidKeyStore] = None,
    ) -> "RealtimeContext":
        presence = PresenceTable()
        hub = ConnectionHub()
        return cls(
            session_factory=session_factory,
            presence=presence,
            hub=hub,
            router=DeliveryRouter(presence, hub),
            dispatcher=BackgroundDispatcher(),
            push_service=PushNotificationService(
                session_factory, sender=push_sender, key_store=key_store
            ),
        )

    def record_presence(self, user_id: int) -> None:
        """
        Mirror a user's presence into the advisory user columns, off-loop.

        Writes for one user run one after another and each writes the Presence
        Table's state when it runs, so the last write always matches the table.
        """
        if self.dispatcher.closed:
            return
        previous = self._presence_writes.get(user_id)
        task = self.dispatcher.spawn(
            self._chained_presence_write(user_id, previous),
            name=f"presence-{user_id}",
        )
        self._presence_writes[user_id] = task
        task.add_done_callback(lambda done: self._forget_presence_write(user_id, done))

    async def _chained_presence_write(
        self, user_id: int, previous: Optional["asyncio.Task[None]"]
    ) -> None:
        if previous is not None and not previous.done():
            # asyncio.wait never raises the earlier write's failure here
            await asyncio.wait({previous})
        await asyncio.to_thread(self._write_presence, user_id, self.presence.is_online(user_id))

    def _forget_presence_write(self, user_id: int, task: "asyncio.Task[None]") -> None:
        if self._presence_writes.get(user_id) is task:
            del self._presence_writes[user_id]

    def _write_presence(self, user_id: int, is_online: bool) -> None:
        db = self.session_factory()
        try:
            UserRepository(db).set_presence(user_id, is_online)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.warning(
                "[REALTIME] Could not update advisory presence for user %s: %s", user_id, exc
            )
        finally:
            db.close()

    def reset_advisory_presence(self) -> int:
        """Startup reconciliation: nobody is online in a fresh process."""
        db = self.session_factory()
        try:
            changed = UserRepository(db).mark_all_offline()
            db.commit()
            return changed
        finally:
            db.close()

    async def close(self) -> None:
        closed = self.hub.close_all()
        for connection_id in closed:
            self.router.leave(connection_id)
        self.presence.clear()
        await self.dispatcher.shutdown()
        logger.info("[REALTIME] Context closed (%s connection(s) dropped)", len(closed))
