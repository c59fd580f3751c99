from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

URL_RE = re.compile(
    r"https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"(?:[-a-zA-Z0-9()@:%_+.~#?&/=]*[-a-zA-Z0-9@:%_+~#?&/=])?"
)
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_SEPARATOR_RE = re.compile(r"[-_]")
_EXTENSION_RE = re.compile(r"\.(?:html|php|aspx?)$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class URLOccurrence:
    url: str
    index: int


def iter_urls(text: str) -> Iterator[URLOccurrence]:
    """Yield bare URLs in ``text``, skipping any that sit inside ``[label](url)``."""
    linked_spans = [match.span() for match in MARKDOWN_LINK_RE.finditer(text)]
    for match in URL_RE.finditer(text):
        start = match.start()
        if any(span_start <= start < span_end for span_start, span_end in linked_spans):
            continue
        yield URLOccurrence(url=match.group(0), index=start)


def find_urls(text: str) -> list[URLOccurrence]:
    return list(iter_urls(text))


def is_markdown_link_target(line: str, position: int) -> bool:
    return line[:position].endswith("](")


def title_from_url(url: str) -> str:
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return url
    if not parsed.scheme or not hostname:
        return url

    segments = [segment for segment in parsed.path.split("/") if segment]
    raw_segment = _SEPARATOR_RE.sub(" ", unquote(segments[-1])) if segments else ""
    if not raw_segment.strip():
        return hostname.removeprefix("www.")

    cleaned = _SEPARATOR_RE.sub(" ", _EXTENSION_RE.sub("", raw_segment))
    title = " ".join(_capitalize(word) for word in cleaned.split(" ")).strip()
    return title or hostname


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()
