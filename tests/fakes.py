from __future__ import annotations

from typing import Any, Callable

from autotitle.core.errors import TransientFetchError
from autotitle.core.host import Cursor


class FakeEditor:
    def __init__(self, *lines: str, cursor: Cursor | None = None) -> None:
        self.lines = list(lines)
        self.cursor = cursor or Cursor(line=0, ch=0)
        self.writes: list[tuple[int, str]] = []

    def get_line(self, line_number: int) -> str | None:
        if 0 <= line_number < len(self.lines):
            return self.lines[line_number]
        return None

    def set_line(self, line_number: int, text: str) -> None:
        self.lines[line_number] = text
        self.writes.append((line_number, text))

    def get_cursor(self) -> Cursor:
        return self.cursor

    def replace_selection(self, text: str) -> None:
        line = self.lines[self.cursor.line]
        merged = line[: self.cursor.ch] + text + line[self.cursor.ch :]
        self.lines[self.cursor.line : self.cursor.line + 1] = merged.split("\n")


class StubResolver:
    def __init__(self, titles: dict[str, str] | None = None, *, fail_with: Exception | None = None) -> None:
        self.titles = titles or {}
        self.fail_with = fail_with
        self.calls: list[str] = []

    async def resolve(self, url: str) -> str:
        self.calls.append(url)
        if self.fail_with is not None:
            raise self.fail_with
        return self.titles.get(url, url)


def transient(url: str) -> TransientFetchError:
    return TransientFetchError(url, attempts=4)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(delay, callback, args)
        self.timers.append(timer)
        return timer

    def fire_pending(self) -> None:
        for timer in list(self.timers):
            if not timer.cancelled:
                timer.cancelled = True
                timer.callback(*timer.args)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
