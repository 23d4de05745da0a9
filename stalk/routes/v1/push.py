# stalk/routes/v1/push.py
"""Push notification routes - API v1."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from ...api.dependencies.auth import get_current_user
from ...api.dependencies.database import get_db
from ...api.dependencies.realtime import get_push_service
from ...models.user import User
from ...schemas.push import (
    PushStatusResponse,
    PushSubscribeRequest,
    PushSubscriptionResponse,
    PushUnsubscribeRequest,
    VapidPublicKeyResponse,
)
from ...services.push_notification_service import PushNotificationService
from ...services.subscription_registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

# V1 router - mounted at /api/v1/push
router = APIRouter(tags=["push-v1"])


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
def get_vapid_public_key(
    push_service: PushNotificationService = Depends(get_push_service),
) -> VapidPublicKeyResponse:
    """
    Get the VAPID public key for push subscription.

    Public; returns an empty key when push is not configured so the client
    can skip subscribing instead of handling an error.
    """
    return VapidPublicKeyResponse(public_key=push_service.get_vapid_public_key())


@router.post("/subscribe", response_model=PushStatusResponse)
def subscribe_to_push(
    request: PushSubscribeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    user_agent_header: Optional[str] = Header(default=None, alias="User-Agent"),
) -> PushStatusResponse:
    """
    Register the browser subscription for the current user.

    Re-subscribing an endpoint replaces its keys and owner, so a device that
    changes hands only ever notifies its latest user.
    """
    browser = request.subscription
    SubscriptionRegistry(db).upsert(
        user_id=current_user.id,
        endpoint=browser.endpoint,
        p256dh_key=browser.keys.p256dh,
        auth_key=browser.keys.auth,
        user_agent=(request.user_agent or user_agent_header or None),
    )
    logger.info("[PUSH] Subscription saved", extra={"user_id": current_user.id})
    return PushStatusResponse(success=True, message="Subscription saved")


@router.delete("/unsubscribe", response_model=PushStatusResponse)
def unsubscribe_from_push(
    request: PushUnsubscribeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PushStatusResponse:
    """Remove one of the current user's subscriptions."""
    deleted = SubscriptionRegistry(db).remove(endpoint=request.endpoint, user_id=current_user.id)

    if deleted:
        return PushStatusResponse(success=True, message="Unsubscribed from push notifications")
    return PushStatusResponse(success=False, message="Subscription not found")


@router.get("/subscriptions", response_model=list[PushSubscriptionResponse])
def list_subscriptions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[PushSubscriptionResponse]:
    """
    List all push subscriptions for the current user.

    Users may have multiple subscriptions (different devices/browsers).
    """
    subscriptions = SubscriptionRegistry(db).list_for_user(current_user.id)
    return [PushSubscriptionResponse.model_validate(item) for item in subscriptions]
