"""
Fire-and-forget task tracking.

Audit rows, genome statistics and learning-service calls must never block
or fail the turn that produced them. They are scheduled here as asyncio
tasks with at-most-once semantics: each coroutine runs once, and a failure
is logged and dropped.

Usage::

    background = BackgroundTasks()
    background.spawn(store.decisions.record(decision), label="decision")
    ...
    await background.drain()   # before the invocation returns
"""

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Holds strong references to in-flight side-effect tasks."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, label: str = "") -> asyncio.Task:
        """Schedule *coro* without awaiting it."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, label))
        return task

    def _on_done(self, task: asyncio.Task, label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"[Background] {label or 'task'} failed: {exc}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for outstanding tasks, giving up after *timeout* seconds."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, not_done = await asyncio.wait(tasks, timeout=timeout)
        if not_done:
            logger.warning(f"[Background] {len(not_done)} task(s) still running after {timeout}s")
