"""View lifetime scope for async work started by a review or upload view"""
import asyncio
import logging
from typing import Any, Awaitable, Optional, Set

from utils.errors import ViewClosedError

logger = logging.getLogger(__name__)


class ViewScope:
    """
    Owns every task spawned on behalf of one view.

    Once `aclose()` has run, outstanding tasks are cancelled and any
    continuation awaiting them through `run()` sees `ViewClosedError`, which
    components treat as a no-op instead of touching disposed state.
    """

    def __init__(self, name: str = "view"):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable[Any], name: Optional[str] = None) -> asyncio.Task:
        if self._closed:
            # Never awaited, close it to avoid the "never awaited" warning
            coro.close()
            raise ViewClosedError(f"{self.name} is closed")

        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, coro: Awaitable[Any]) -> Any:
        """Await `coro` as a task owned by this scope"""
        task = self.spawn(coro)
        try:
            return await task
        except asyncio.CancelledError:
            if self._closed:
                raise ViewClosedError(f"{self.name} closed while a request was pending") from None
            raise

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Closed {self.name}, cancelled {len(tasks)} pending task(s)")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
