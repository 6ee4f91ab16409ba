"""Fire-and-forget execution of background coroutines."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


@runtime_checkable
class BackgroundExecutor(Protocol):
    """Schedules work that the caller does not await.

    Implementations must never let a failure of the scheduled work reach
    the caller or surface as an unhandled task exception.
    """

    def spawn(self, factory: TaskFactory, *, name: str = "") -> None:
        ...


class AsyncioBackgroundExecutor:
    """Runs each factory as an ``asyncio.Task`` on the running loop.

    Strong references to pending tasks are kept until they finish so the
    loop cannot garbage-collect them mid-flight.

    Usage::

        executor = AsyncioBackgroundExecutor()
        executor.spawn(uploader.upload_health_device_data, name="health-upload")
        ...
        await executor.drain()  # on shutdown
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, factory: TaskFactory, *, name: str = "") -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; background task %r not scheduled", name)
            return

        task = loop.create_task(self._guard(factory, name), name=name or None)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every task spawned so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    @staticmethod
    async def _guard(factory: TaskFactory, name: str) -> None:
        try:
            await factory()
        except Exception:
            logger.exception("Background task %r failed", name or factory)
