from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from autotitle.core.errors import TransientFetchError
from autotitle.core.urls import title_from_url
from autotitle.services.fetcher import PageFetcher

DEFAULT_EMBED_ENDPOINT = "https://noembed.com/embed"
DEFAULT_USER_AGENT = "link-autotitle/1.0"
TITLE_RE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def extract_title(html: str) -> str | None:
    match = TITLE_RE.search(html)
    if match is None:
        return None
    return " ".join(match.group(1).split()) or None


class TitleResolver:
    """Turns a URL into a display title.

    Tiers, in order: oEmbed-style lookup, direct fetch of the page, permissive
    fetch, title derived from the URL itself. Only a run of attempts in which
    no request got any response at all is reported as
    :class:`TransientFetchError`.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        embed_endpoint: str = DEFAULT_EMBED_ENDPOINT,
        user_agent: str = DEFAULT_USER_AGENT,
        max_retries: int = 3,
        base_delay_seconds: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.embed_endpoint = embed_endpoint
        self.user_agent = user_agent
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds
        self._sleep = sleep

    async def resolve(self, url: str) -> str:
        embedded = await self._lookup_embed(url)
        if embedded is not None:
            return embedded

        attempt = 0
        while True:
            try:
                return await self._fetch_title(url)
            except httpx.TransportError as exc:
                if attempt >= self.max_retries:
                    raise TransientFetchError(url, attempts=attempt + 1) from exc
                logger.warning(
                    "retrying fetch for %s (%s retries left): %s",
                    url,
                    self.max_retries - attempt,
                    exc,
                )
                await self._sleep(self.base_delay_seconds * 2**attempt)
                attempt += 1

    async def _lookup_embed(self, url: str) -> str | None:
        try:
            response = await self.fetcher.fetch(self.embed_endpoint, params={"url": url})
            if not response.ok:
                return None
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("embed lookup failed for %s: %s", url, exc)
            return None

        if not isinstance(payload, dict):
            return None
        title = _as_text(payload.get("title"))
        provider = _as_text(payload.get("provider_name"))
        if title and provider:
            return f"{provider} - {title}"
        return None

    async def _fetch_title(self, url: str) -> str:
        headers = {"User-Agent": self.user_agent}
        direct_error: httpx.TransportError | None = None
        try:
            response = await self.fetcher.fetch(url, headers=headers)
            if response.ok:
                title = extract_title(response.text())
                if title:
                    return title
        except httpx.TransportError as exc:
            logger.warning("direct fetch failed for %s, trying permissive mode: %s", url, exc)
            direct_error = exc
        except httpx.HTTPError as exc:
            logger.warning("direct fetch for %s gave no usable response: %s", url, exc)

        try:
            response = await self.fetcher.fetch(url, headers=headers, mode="no-cors")
        except httpx.TransportError:
            if direct_error is not None:
                raise
            logger.warning("permissive fetch failed for %s", url)
        except httpx.HTTPError as exc:
            logger.warning("permissive fetch for %s gave no usable response: %s", url, exc)
        else:
            logger.debug("permissive fetch for %s returned %s response", url, response.type)
        return title_from_url(url)


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        return " ".join(value.split()) or None
    return None
