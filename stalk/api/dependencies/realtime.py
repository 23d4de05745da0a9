# stalk/api/dependencies/realtime.py
"""Access to the lifespan-owned realtime context."""

from fastapi import Depends, HTTPException, Request, status

from ...services.message_service import MessagePipeline
from ...services.push_notification_service import PushNotificationService
from ...services.realtime.context import RealtimeContext


def get_realtime(request: Request) -> RealtimeContext:
    realtime = getattr(request.app.state, "realtime", None)
    if realtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Realtime layer not started",
        )
    return realtime


def get_push_service(realtime: RealtimeContext = Depends(get_realtime)) -> PushNotificationService:
    return realtime.push_service


def get_message_pipeline(realtime: RealtimeContext = Depends(get_realtime)) -> MessagePipeline:
    return MessagePipeline(
        session_factory=realtime.session_factory,
        router=realtime.router,
        push_service=realtime.push_service,
        dispatcher=realtime.dispatcher,
    )
