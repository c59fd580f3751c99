from __future__ import annotations

import asyncio
import logging

import httpx

from autotitle.core.config import get_settings
from autotitle.core.host import ChangeEvents, EditorProvider
from autotitle.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from autotitle.services.enricher import LinkEnricher
from autotitle.services.fetcher import PageFetcher

logger = logging.getLogger(__name__)


async def run_enricher(
    events: ChangeEvents,
    editor_provider: EditorProvider,
    *,
    stop_event: asyncio.Event,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Run the enricher for a host until ``stop_event`` is set."""
    settings = get_settings()
    configure_logging()
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.request_timeout_seconds)
    telemetry_runtime = setup_telemetry(settings, client)

    enricher = LinkEnricher.from_settings(settings, PageFetcher(client), editor_provider)
    try:
        enricher.start(events)
        await stop_event.wait()
    finally:
        await enricher.stop()
        shutdown_telemetry(telemetry_runtime)
        if owns_client:
            await client.aclose()
        logger.info("link enricher shut down")
