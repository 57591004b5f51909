"""Detached background tasks with their own error channel.

Request handlers (``set_watch``, leaderboard reads) return before any
enrichment they trigger has finished. Work handed to ``TaskSupervisor.spawn``
is kept alive by a strong reference until it completes; failures are logged
and never propagated back to whoever spawned the task.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from whalewatch.core.logging import get_logger

logger = get_logger(__name__)


class TaskSupervisor:
    """Owns fire-and-forget asyncio tasks for the lifetime of the app."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any] | None:
        """Schedule ``coro`` in the background.

        Returns the task, or None if the supervisor is already shut down
        (the coroutine is closed without running).
        """
        if self._closed:
            coro.close()
            logger.warning("Task supervisor closed, dropping task", task=name)
            return None
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def join(self) -> None:
        """Wait for every task spawned so far (used by tests and the CLI)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding tasks and refuse new ones."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug("Background tasks cancelled", count=len(tasks))
