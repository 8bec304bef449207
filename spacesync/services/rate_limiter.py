from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque


logger = logging.getLogger(__name__)


Task = Callable[[], Awaitable[Any]]


class RateLimiter:
    """Throttled FIFO task queue for external calls.

    Tasks run in batches of at most ``batch_size``; after every batch the
    drain loop sleeps ``cooldown_ms`` before looking at the queue again, so
    consecutive batch starts are at least one cooldown apart. Exactly one
    drain loop exists at a time: it is held as a single ``asyncio.Task`` that
    is created only when none is running and cleared only by the loop itself
    once the queue is empty right after a cooldown.

    Each submitted task gets its own future. A failing task settles only its
    own future; siblings and the drain loop carry on. Tasks are never retried.
    """

    def __init__(
        self,
        batch_size: int,
        cooldown_ms: int,
        *,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if cooldown_ms < 0:
            raise ValueError("cooldown_ms must be >= 0")
        self._batch_size = batch_size
        self._cooldown_s = cooldown_ms / 1000.0
        self._sleep = sleep or asyncio.sleep
        self._queue: Deque[tuple[Task, asyncio.Future[Any]]] = deque()
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def cooldown_ms(self) -> int:
        return int(self._cooldown_s * 1000)

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def active(self) -> bool:
        return self._drain_task is not None

    def submit(self, task: Task) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._queue.append((task, future))
        # Arm the drain loop only when idle; a running loop will pick the task up.
        if self._drain_task is None:
            self._drain_task = loop.create_task(self._drain())
        return future

    async def run(self, task: Task) -> Any:
        return await self.submit(task)

    async def _drain(self) -> None:
        try:
            while True:
                batch = [self._queue.popleft() for _ in range(min(self._batch_size, len(self._queue)))]
                if batch:
                    await asyncio.gather(
                        *(self._execute(task, future) for task, future in batch),
                        return_exceptions=True,
                    )
                await self._sleep(self._cooldown_s)
                if not self._queue:
                    break
        finally:
            self._drain_task = None

    async def _execute(self, task: Task, future: asyncio.Future[Any]) -> None:
        try:
            result = await task()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:  # noqa: BLE001 - surfaced through the task's own future
            if not future.done():
                future.set_exception(exc)
            return
        if not future.done():
            future.set_result(result)

    async def aclose(self) -> None:
        # Stop draining and cancel whatever is still queued.
        task = self._drain_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        while self._queue:
            _task, future = self._queue.popleft()
            if not future.done():
                future.cancel()
        if task is not None:
            logger.info("rate_limiter_closed")
