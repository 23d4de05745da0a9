"""Versioned API routers, mounted under /api/v1 by ``stalk.main``."""

from . import chats, health, push, realtime, users

__all__ = ["chats", "health", "push", "realtime", "users"]
