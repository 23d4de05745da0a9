# stalk/schemas/health.py
from datetime import datetime

from ._strict_base import StrictModel


class HealthResponse(StrictModel):
    status: str
    environment: str
    timestamp: datetime
    connections: int
    online_users: int
    push_configured: bool
