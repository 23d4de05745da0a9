# stalk/main.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .database import SessionLocal, init_db
from .errors import register_error_handlers
from .routes import metrics as metrics_routes
from .routes.v1 import (
    chats as chats_v1,
    health as health_v1,
    push as push_v1,
    realtime as realtime_v1,
    users as users_v1,
)
from .services.realtime.context import RealtimeContext

# Configure logging
logging.basicConfig(
    level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the realtime context on startup and tear it down on shutdown.

    Tests may pre-seed ``app.state.session_factory``, ``app.state.push_sender``
    and ``app.state.vapid_key_store`` before the lifespan runs.
    """
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    session_factory = getattr(app.state, "session_factory", None)
    if session_factory is None:
        session_factory = SessionLocal
        await asyncio.to_thread(init_db)

    realtime = RealtimeContext.build(
        session_factory,
        push_sender=getattr(app.state, "push_sender", None),
        key_store=getattr(app.state, "vapid_key_store", None),
    )
    reset = await asyncio.to_thread(realtime.reset_advisory_presence)
    if reset:
        logger.info("[REALTIME] Reset %s stale online flag(s)", reset)
    if not realtime.push_service.is_configured():
        logger.info("[PUSH] Running without web push")
    app.state.realtime = realtime

    try:
        yield
    finally:
        logger.info(f"{BRAND_NAME} API shutting down...")
        await realtime.close()
        app.state.realtime = None


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
logger.info("CORS allow_origins=%s allow_credentials=%s", settings.allowed_origins, True)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(chats_v1.router, prefix="/chats")
api_v1.include_router(users_v1.router, prefix="/users")
api_v1.include_router(push_v1.router, prefix="/push")
api_v1.include_router(health_v1.router, prefix="/health")
api_v1.include_router(realtime_v1.router)

app.include_router(api_v1)
app.include_router(metrics_routes.router)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": f"Welcome to the {BRAND_NAME} API", "docs": "/docs"}
