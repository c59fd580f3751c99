from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from opentelemetry import trace

from autotitle.core.host import Editor
from autotitle.core.telemetry import bind_task
from autotitle.core.urls import is_markdown_link_target
from autotitle.services.title_cache import TitleCache
from autotitle.services.title_resolver import TitleResolver

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

LineKey = tuple[str, int]
RetryKey = tuple[str, int, int]
InFlightKey = tuple[str, int, int, float]


@dataclass(frozen=True, slots=True)
class ProcessingTask:
    url: str
    line_number: int
    position: int
    timestamp: float

    @property
    def line_key(self) -> LineKey:
        return (self.url, self.line_number)

    @property
    def retry_key(self) -> RetryKey:
        return (self.url, self.line_number, self.position)

    @property
    def in_flight_key(self) -> InFlightKey:
        return (self.url, self.line_number, self.position, self.timestamp)


@dataclass(slots=True)
class RetryQueueItem:
    task: ProcessingTask
    retries: int
    next_retry: float


class TaskOutcome(enum.Enum):
    APPLIED = "applied"
    ABANDONED = "abandoned"
    SKIPPED = "skipped"


def format_markdown_link(title: str, url: str) -> str:
    return f"[{title}]({url})"


class TaskPipeline:
    """Validates, resolves and applies a single task.

    Shared by the task queue and the retry scheduler so both producers see the
    same in-flight set. The in-flight check-and-set happens before the first
    await, which is what keeps two producers from resolving the same key.
    Results that arrive after ``close`` are dropped, even if the pipeline was
    reopened in the meantime.
    """

    def __init__(self, resolver: TitleResolver, cache: TitleCache) -> None:
        self.resolver = resolver
        self.cache = cache
        self._in_flight: set[InFlightKey] = set()
        self._generation = 0
        self.closed = False

    def is_in_flight(self, task: ProcessingTask) -> bool:
        return task.in_flight_key in self._in_flight

    async def process(self, editor: Editor, task: ProcessingTask) -> TaskOutcome:
        key = task.in_flight_key
        if self.closed or key in self._in_flight:
            return TaskOutcome.SKIPPED

        self._in_flight.add(key)
        generation = self._generation
        try:
            with (
                bind_task(task.url, task.line_number),
                tracer.start_as_current_span("enricher.process_task") as span,
            ):
                span.set_attribute("task.url", task.url)
                span.set_attribute("task.line_number", task.line_number)
                if not _url_still_at(editor, task):
                    logger.debug("abandoning stale task url=%s line=%s", task.url, task.line_number)
                    return TaskOutcome.ABANDONED

                title = self.cache.get(task.url)
                span.set_attribute("task.cache_hit", title is not None)
                if title is None:
                    title = await self.resolver.resolve(task.url)
                    if self._discarded(generation):
                        return TaskOutcome.ABANDONED
                    self.cache.put(task.url, title)

                link = format_markdown_link(title, task.url)
                if self._discarded(generation) or not self._apply(editor, task, link):
                    return TaskOutcome.ABANDONED
                return TaskOutcome.APPLIED
        finally:
            self._in_flight.discard(key)

    def open(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True
        self._generation += 1
        self._in_flight.clear()

    def _discarded(self, generation: int) -> bool:
        return self.closed or generation != self._generation

    def _apply(self, editor: Editor, task: ProcessingTask, markdown_link: str) -> bool:
        if not _url_still_at(editor, task):
            return False
        line = editor.get_line(task.line_number) or ""
        end = task.position + len(task.url)
        editor.set_line(task.line_number, line[: task.position] + markdown_link + line[end:])
        return True


def _url_still_at(editor: Editor, task: ProcessingTask) -> bool:
    line = editor.get_line(task.line_number)
    if not line or not line.startswith(task.url, task.position):
        return False
    return not is_markdown_link_target(line, task.position)
