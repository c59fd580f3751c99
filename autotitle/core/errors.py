from __future__ import annotations


class AutotitleError(Exception):
    """Base class for errors raised by the enrichment engine."""


class TransientFetchError(AutotitleError):
    """Every fetch attempt for a URL failed without receiving any response."""

    def __init__(self, url: str, attempts: int) -> None:
        super().__init__(f"fetch failed for {url} after {attempts} attempts")
        self.url = url
        self.attempts = attempts
