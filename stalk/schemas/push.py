# stalk/schemas/push.py
"""
Schemas for the push endpoints.

Subscribe takes the browser's ``PushSubscription.toJSON()`` object wrapped
as ``{"subscription": {...}}``, exactly what the service worker client posts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ._strict_base import CamelModel, CamelRequestModel, StrictModel, StrictRequestModel


class PushKeys(StrictRequestModel):
    p256dh: str = Field(..., min_length=1, max_length=512)
    auth: str = Field(..., min_length=1, max_length=512)


class BrowserPushSubscription(CamelRequestModel):
    """``PushSubscription.toJSON()`` as produced by the browser."""

    endpoint: str = Field(..., max_length=2048)
    keys: PushKeys
    # Sent by browsers (usually null); not stored
    expiration_time: Optional[float] = None

    @field_validator("endpoint")
    @classmethod
    def endpoint_must_be_https(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("Push endpoint must use HTTPS")
        return value


class PushSubscribeRequest(CamelRequestModel):
    subscription: BrowserPushSubscription
    # Falls back to the request's User-Agent header
    user_agent: Optional[str] = Field(None, max_length=500)


class PushUnsubscribeRequest(StrictRequestModel):
    endpoint: str = Field(..., max_length=2048)


class PushSubscriptionResponse(CamelModel):
    """One registered device; the encryption keys are never echoed back."""

    id: int
    endpoint: str
    user_agent: Optional[str] = None
    created_at: datetime


class VapidPublicKeyResponse(CamelModel):
    """Empty ``publicKey`` means push is not configured on this server."""

    public_key: str


class PushStatusResponse(StrictModel):
    success: bool
    message: str
