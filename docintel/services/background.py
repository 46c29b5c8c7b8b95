"""Detached asyncio tasks that outlive the request that started them."""

import asyncio
from typing import Any, Coroutine, Set

from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BackgroundTasks:
    """Keeps strong references to spawned tasks until they finish."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Schedule a coroutine on the running loop without awaiting it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.error(
                f"Background task {task.get_name()} failed",
                exc_info=(type(error), error, error.__traceback__),
            )

    async def drain(self) -> None:
        """Wait for every pending task; used on shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
