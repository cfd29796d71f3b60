"""Background task runner — owns fire-and-forget work that outlives the request."""

import asyncio
import logging
from collections.abc import Coroutine

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Keeps strong references to detached tasks and logs how they end."""

    def __init__(self):
        self._tasks: dict[asyncio.Task, str] = {}
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self.adopt(name, task)
        return task

    def adopt(self, name: str, task: asyncio.Task) -> asyncio.Task:
        """Take ownership of a task that is already running."""
        if task in self._tasks:
            return task
        self._tasks[task] = name
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        name = self._tasks.pop(task, task.get_name())
        if task.cancelled():
            logger.info(f"Background task {name} cancelled")
            return
        error = task.exception()
        if error is not None:
            self.failed += 1
            logger.error(f"Background task {name} failed: {type(error).__name__}: {error}")
        else:
            self.completed += 1
            logger.debug(f"Background task {name} completed")

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for every tracked task. Returns False if some were still running at the timeout."""
        if not self._tasks:
            return True
        _, still_running = await asyncio.wait(list(self._tasks), timeout=timeout)
        return not still_running

    async def shutdown(self, timeout: float = 5.0):
        if await self.drain(timeout):
            return
        stragglers = list(self._tasks)
        logger.warning(f"Cancelling {len(stragglers)} background tasks at shutdown")
        for task in stragglers:
            task.cancel()
        await asyncio.gather(*stragglers, return_exceptions=True)
