from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from opentelemetry import trace

from autotitle.core.errors import TransientFetchError
from autotitle.core.host import EditorProvider
from autotitle.jobs.tasks import ProcessingTask, RetryKey, RetryQueueItem, TaskPipeline

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RetryScheduler:
    """Holds tasks whose titles could not be fetched and retries them on a timer."""

    def __init__(
        self,
        pipeline: TaskPipeline,
        editor_provider: EditorProvider,
        *,
        max_retries: int = 3,
        base_delay_seconds: float = 1.0,
        interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.pipeline = pipeline
        self.editor_provider = editor_provider
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.items: dict[RetryKey, RetryQueueItem] = {}
        self._stopped = asyncio.Event()
        self._runner: asyncio.Task[None] | None = None

    def holds(self, task: ProcessingTask) -> bool:
        return task.retry_key in self.items

    def add(self, task: ProcessingTask) -> bool:
        if self.pipeline.closed:
            return False
        key = task.retry_key
        existing = self.items.get(key)
        previous_retries = existing.retries if existing is not None else 0
        if previous_retries >= self.max_retries:
            return False

        self.items[key] = RetryQueueItem(
            task=task,
            retries=previous_retries + 1,
            next_retry=self.clock() + 2**previous_retries * self.base_delay_seconds,
        )
        return True

    async def tick(self) -> None:
        now = self.clock()
        due = [(key, item) for key, item in self.items.items() if item.next_retry <= now]
        if not due:
            return

        with tracer.start_as_current_span("enricher.retry_tick") as span:
            span.set_attribute("retry.due_count", len(due))
            for key, item in due:
                editor = self.editor_provider()
                if editor is None:
                    continue
                try:
                    outcome = await self.pipeline.process(editor, item.task)
                except TransientFetchError as exc:
                    if item.retries >= self.max_retries:
                        logger.info("giving up on %s after %s retries", item.task.url, item.retries)
                        self.items.pop(key, None)
                    else:
                        logger.warning("retry %s failed for %s: %s", item.retries, item.task.url, exc)
                        self.add(item.task)
                    continue
                except Exception:
                    logger.exception("retry failed for url=%s; dropping", item.task.url)
                    self.items.pop(key, None)
                    continue

                logger.debug("retry for %s finished: %s", item.task.url, outcome.value)
                self.items.pop(key, None)

    def start(self) -> None:
        if self._runner is not None and not self._runner.done():
            return
        self._stopped = asyncio.Event()
        self._runner = asyncio.get_running_loop().create_task(self._run(self._stopped))

    async def stop(self) -> None:
        self._stopped.set()
        self.items.clear()
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner

    async def _run(self, stopped: asyncio.Event) -> None:
        while not stopped.is_set():
            try:
                await self.tick()
            except Exception:  # pragma: no cover - timer robustness
                logger.exception("retry tick failed")
            try:
                await asyncio.wait_for(stopped.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                pass
