# stalk/routes/v1/chats.py
"""
Chat routes - API v1.

Mounted at /api/v1/chats. A conversation is addressed by the other
participant's user id; the canonical key is derived server side.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ...api.dependencies.auth import get_current_user
from ...api.dependencies.realtime import get_message_pipeline
from ...models.user import User
from ...schemas.message import MessageResponse, SendMessageRequest
from ...services.message_service import MessagePipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chats-v1"])


@router.get("/{other_user_id}/messages", response_model=List[MessageResponse])
async def get_messages(
    other_user_id: int,
    current_user: User = Depends(get_current_user),
    pipeline: MessagePipeline = Depends(get_message_pipeline),
) -> List[MessageResponse]:
    """Full history with another user, oldest first."""
    return await pipeline.list_history(current_user, other_user_id)


@router.post(
    "/{other_user_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    other_user_id: int,
    request: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    pipeline: MessagePipeline = Depends(get_message_pipeline),
) -> MessageResponse:
    """
    Send a text or file message.

    The response is the stored message; live delivery and push happen
    alongside and never change it.
    """
    result = await pipeline.send_message(current_user, other_user_id, request)
    return result.message
