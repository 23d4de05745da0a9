# stalk/routes/v1/health.py
"""
Health check endpoint for monitoring and load balancer probes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ...api.dependencies.realtime import get_realtime
from ...core.config import settings
from ...schemas.health import HealthResponse
from ...services.realtime.context import RealtimeContext

router = APIRouter(tags=["health"])


@router.get("", response_model=HealthResponse)
def health_check(realtime: RealtimeContext = Depends(get_realtime)) -> HealthResponse:
    """Liveness plus a snapshot of the realtime layer."""
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc),
        connections=realtime.hub.connection_count,
        online_users=realtime.presence.online_count,
        push_configured=realtime.push_service.is_configured(),
    )
