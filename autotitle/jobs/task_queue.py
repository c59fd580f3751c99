from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from autotitle.core.errors import TransientFetchError
from autotitle.core.host import Editor
from autotitle.jobs.retry_scheduler import RetryScheduler
from autotitle.jobs.tasks import LineKey, ProcessingTask, RetryKey, TaskPipeline

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def dedupe_tasks(tasks: Iterable[ProcessingTask]) -> list[ProcessingTask]:
    """Keep the earliest-positioned task per ``(url, line_number)``, in position order."""
    unique: dict[LineKey, ProcessingTask] = {}
    for task in sorted(tasks, key=lambda item: item.position):
        unique.setdefault(task.line_key, task)
    return list(unique.values())


class TaskQueue:
    """Single-consumer work list feeding the task pipeline."""

    def __init__(
        self,
        pipeline: TaskPipeline,
        retry_scheduler: RetryScheduler,
        *,
        pause_seconds: float = 0.1,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.pipeline = pipeline
        self.retry_scheduler = retry_scheduler
        self.pause_seconds = pause_seconds
        self._sleep = sleep
        self._pending: deque[tuple[Editor, ProcessingTask]] = deque()
        self._pending_keys: set[RetryKey] = set()
        self._drainer: asyncio.Task[None] | None = None
        self._draining = False

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, editor: Editor, tasks: Iterable[ProcessingTask]) -> list[ProcessingTask]:
        accepted: list[ProcessingTask] = []
        for task in dedupe_tasks(tasks):
            key = task.retry_key
            if key in self._pending_keys or self.retry_scheduler.holds(task):
                logger.debug("task for %s at %s already queued or awaiting retry", task.url, key[1:])
                continue
            self._pending.append((editor, task))
            self._pending_keys.add(key)
            accepted.append(task)

        if accepted and (self._drainer is None or self._drainer.done()):
            self._drainer = asyncio.get_running_loop().create_task(self.drain())
        return accepted

    async def drain(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._pending:
                editor, task = self._pending.popleft()
                self._pending_keys.discard(task.retry_key)
                if self.pipeline.is_in_flight(task):
                    logger.debug("skipping %s; already in flight", task.url)
                else:
                    await self._run(editor, task)
                await self._sleep(self.pause_seconds)
        finally:
            self._draining = False

    async def wait_idle(self) -> None:
        while self._drainer is not None and not self._drainer.done():
            await self._drainer

    def clear(self) -> None:
        self._pending.clear()
        self._pending_keys.clear()

    async def _run(self, editor: Editor, task: ProcessingTask) -> None:
        try:
            outcome = await self.pipeline.process(editor, task)
        except TransientFetchError as exc:
            if task.retry_key in self._pending_keys:
                logger.warning("fetch failed for %s; a newer task is already queued", task.url)
                return
            logger.warning("fetch failed for %s; scheduling retry: %s", task.url, exc)
            self.retry_scheduler.add(task)
        except Exception:
            logger.exception("failed to process url=%s", task.url)
        else:
            logger.debug("task for %s finished: %s", task.url, outcome.value)
