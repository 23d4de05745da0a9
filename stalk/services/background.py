# stalk/services/background.py
"""Supervised fire-and-forget tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """
    Runs coroutines the caller does not await.

    Tasks stay referenced until they finish, failures are logged instead of
    surfacing as "exception was never retrieved", and shutdown waits for
    in-flight work before cancelling stragglers.
    """

    def __init__(self) -> None:
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> "asyncio.Task[Any]":
        if self._closed:
            coro.close()
            raise RuntimeError("Background dispatcher is shut down")
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for everything spawned so far (and anything they spawn)."""
        while self._tasks:
            _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if pending:
                break

    async def shutdown(self, timeout: float = 5.0) -> None:
        self._closed = True
        await self.drain(timeout=timeout)
        remaining = list(self._tasks)
        for task in remaining:
            task.cancel()
        if remaining:
            logger.warning("Cancelled %s unfinished background task(s) on shutdown", len(remaining))
            await asyncio.gather(*remaining, return_exceptions=True)
