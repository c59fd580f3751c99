"""Interfaces the enrichment engine expects from its host application.

The host owns the document, the change/paste event source and the timer
primitive. Anything structurally matching these protocols can be plugged in;
the asyncio event loop already satisfies :class:`Scheduler`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class Cursor:
    line: int
    ch: int


class Editor(Protocol):
    """A line-addressable text buffer with a cursor."""

    def get_line(self, line_number: int) -> str | None: ...

    def set_line(self, line_number: int, text: str) -> None: ...

    def get_cursor(self) -> Cursor: ...

    def replace_selection(self, text: str) -> None: ...


ChangeHandler = Callable[[Editor], None]
PasteHandler = Callable[[str, Callable[[], None], Editor], None]
EditorProvider = Callable[[], "Editor | None"]


class ChangeEvents(Protocol):
    def on_text_changed(self, handler: ChangeHandler) -> None: ...

    def on_paste(self, handler: PasteHandler) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...
