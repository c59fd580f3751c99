from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from autotitle.core.config import Settings
from autotitle.core.host import ChangeEvents, Editor, EditorProvider, Scheduler, TimerHandle
from autotitle.core.urls import find_urls
from autotitle.jobs.retry_scheduler import RetryScheduler
from autotitle.jobs.task_queue import Sleep, TaskQueue
from autotitle.jobs.tasks import ProcessingTask, TaskPipeline
from autotitle.services.fetcher import PageFetcher
from autotitle.services.title_cache import TitleCache
from autotitle.services.title_resolver import TitleResolver

logger = logging.getLogger(__name__)


class LinkEnricher:
    """Turns bare URLs typed or pasted into an editor into ``[title](url)`` links.

    Owns the cache, the in-flight set, the work list and the retry holdings;
    everything is mutated from the event loop only. ``start`` and ``stop``
    bracket its lifetime.
    """

    def __init__(
        self,
        resolver: TitleResolver,
        editor_provider: EditorProvider,
        *,
        cache_capacity: int = 1000,
        debounce_seconds: float = 0.3,
        queue_pause_seconds: float = 0.1,
        retry_interval_seconds: float = 5.0,
        retry_base_delay_seconds: float = 1.0,
        max_retries: int = 3,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.cache = TitleCache(cache_capacity)
        self.pipeline = TaskPipeline(resolver, self.cache)
        self.retry_scheduler = RetryScheduler(
            self.pipeline,
            editor_provider,
            max_retries=max_retries,
            base_delay_seconds=retry_base_delay_seconds,
            interval_seconds=retry_interval_seconds,
            clock=clock,
        )
        self.queue = TaskQueue(self.pipeline, self.retry_scheduler, pause_seconds=queue_pause_seconds, sleep=sleep)
        self.debounce_seconds = debounce_seconds
        self.clock = clock
        self._scheduler = scheduler
        self._debounce: TimerHandle | None = None
        self._events: ChangeEvents | None = None
        self.running = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetcher: PageFetcher,
        editor_provider: EditorProvider,
        **overrides: Any,
    ) -> LinkEnricher:
        resolver = TitleResolver(
            fetcher,
            embed_endpoint=settings.embed_endpoint,
            user_agent=settings.user_agent,
            max_retries=settings.max_retries,
            base_delay_seconds=settings.retry_base_delay_seconds,
        )
        return cls(
            resolver,
            editor_provider,
            cache_capacity=settings.cache_capacity,
            debounce_seconds=settings.debounce_seconds,
            queue_pause_seconds=settings.queue_pause_seconds,
            retry_interval_seconds=settings.retry_interval_seconds,
            retry_base_delay_seconds=settings.retry_base_delay_seconds,
            max_retries=settings.max_retries,
            **overrides,
        )

    def start(self, events: ChangeEvents | None = None) -> None:
        logger.info("starting link enricher")
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        if events is not None and events is not self._events:
            events.on_text_changed(self.handle_change)
            events.on_paste(self.handle_paste)
            self._events = events
        self.pipeline.open()
        self.running = True
        self.retry_scheduler.start()

    async def stop(self) -> None:
        """Drop all pending work and wait for the background tasks to wind down.

        Requests already on the wire are allowed to finish; their titles are
        discarded.
        """
        logger.info("stopping link enricher")
        self.running = False
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        self.pipeline.close()
        self.queue.clear()
        self.cache.clear()
        await self.retry_scheduler.stop()
        await self.queue.wait_idle()

    def handle_change(self, editor: Editor) -> None:
        if not self.running or self._scheduler is None:
            return
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self._scheduler.call_later(self.debounce_seconds, self._scan_cursor_line, editor)

    def handle_paste(self, text: str, prevent_default: Callable[[], None], editor: Editor) -> None:
        if not self.running or not text:
            return
        occurrences = find_urls(text)
        if not occurrences:
            return

        prevent_default()
        cursor = editor.get_cursor()
        timestamp = self.clock()
        tasks = []
        for occurrence in occurrences:
            line_offset = text.count("\n", 0, occurrence.index)
            if line_offset:
                column = occurrence.index - (text.rfind("\n", 0, occurrence.index) + 1)
            else:
                column = cursor.ch + occurrence.index
            tasks.append(
                ProcessingTask(
                    url=occurrence.url,
                    line_number=cursor.line + line_offset,
                    position=column,
                    timestamp=timestamp,
                )
            )
        self.queue.enqueue(editor, tasks)
        editor.replace_selection(text)

    def _scan_cursor_line(self, editor: Editor) -> None:
        self._debounce = None
        if not self.running:
            return
        cursor = editor.get_cursor()
        line = editor.get_line(cursor.line) or ""
        occurrences = find_urls(line)
        if not occurrences:
            return

        timestamp = self.clock()
        self.queue.enqueue(
            editor,
            [
                ProcessingTask(url=item.url, line_number=cursor.line, position=item.index, timestamp=timestamp)
                for item in occurrences
            ],
        )
