"""Logging and tracing for the enrichment engine.

Log records carry the current trace id and the task being processed
(``url@line``), so a resolution can be followed from the queue through the
HTTP calls it makes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass

import httpx
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from autotitle.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s task=%(task)s %(message)s"
NO_TASK = "-"

_current_task: ContextVar[str] = ContextVar("autotitle_task", default=NO_TASK)
_BASE_LOG_RECORD_FACTORY = logging.getLogRecordFactory()
_record_factory_installed = False

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TelemetryRuntime:
    provider: TracerProvider | None
    client: httpx.AsyncClient | None = None


@contextmanager
def bind_task(url: str, line_number: int) -> Iterator[None]:
    token = _current_task.set(f"{url}@{line_number}")
    try:
        yield
    finally:
        _current_task.reset(token)


def current_task() -> str:
    return _current_task.get()


def configure_logging(level: int = logging.INFO) -> None:
    _install_record_factory()
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_resource(settings: Settings) -> Resource:
    return Resource.create(
        {
            SERVICE_NAME: settings.otel_service_name,
            DEPLOYMENT_ENVIRONMENT: settings.environment,
            "autotitle.cache_capacity": settings.cache_capacity,
            "autotitle.max_retries": settings.max_retries,
            "autotitle.embed_endpoint": settings.embed_endpoint,
        }
    )


def setup_telemetry(settings: Settings, client: httpx.AsyncClient | None = None) -> TelemetryRuntime:
    """Install a tracer provider and trace the title fetches made through ``client``."""
    if not settings.otel_enabled:
        return TelemetryRuntime(provider=None)

    if settings.otel_log_correlation:
        _install_record_factory()

    provider = TracerProvider(
        resource=build_resource(settings),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    if settings.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    else:
        logger.info("no OTLP endpoint configured; enrichment spans stay in-process")
    trace.set_tracer_provider(provider)

    if client is not None:
        HTTPXClientInstrumentor.instrument_client(client, tracer_provider=provider)
    return TelemetryRuntime(provider=provider, client=client)


def shutdown_telemetry(runtime: TelemetryRuntime) -> None:
    if runtime.provider is None:
        return
    if runtime.client is not None:
        HTTPXClientInstrumentor.uninstrument_client(runtime.client)
    runtime.provider.force_flush()
    runtime.provider.shutdown()


def _install_record_factory() -> None:
    global _record_factory_installed
    if _record_factory_installed:
        return

    def record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
        record = _BASE_LOG_RECORD_FACTORY(*args, **kwargs)
        context = trace.get_current_span().get_span_context()
        record.trace_id = format(context.trace_id, "032x") if context.is_valid else "0" * 32
        record.task = _current_task.get()
        return record

    logging.setLogRecordFactory(record_factory)
    _record_factory_installed = True
