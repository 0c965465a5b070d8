from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine


LOGGER = logging.getLogger(__name__)


class BackgroundTasks:
    """Fire-and-forget coroutines whose failures are logged, never raised.

    Task references are kept until completion so they are not garbage
    collected mid-flight.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=label)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            LOGGER.info("Background task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def drain(self) -> None:
        if not self._tasks:
            return
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
