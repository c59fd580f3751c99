from __future__ import annotations

import logging

from autotitle.core.config import Settings
from autotitle.core.telemetry import (
    NO_TASK,
    bind_task,
    build_resource,
    configure_logging,
    current_task,
    setup_telemetry,
    shutdown_telemetry,
)


def test_bind_task_scopes_current_task() -> None:
    assert current_task() == NO_TASK
    with bind_task("https://example.com/a", 3):
        assert current_task() == "https://example.com/a@3"
    assert current_task() == NO_TASK


def test_log_records_carry_task_being_processed(caplog) -> None:
    configure_logging()
    with caplog.at_level(logging.INFO, logger="autotitle.test"):
        with bind_task("https://example.com/a", 7):
            logging.getLogger("autotitle.test").info("resolving")
        logging.getLogger("autotitle.test").info("idle")

    assert [record.task for record in caplog.records] == ["https://example.com/a@7", NO_TASK]
    assert all(len(record.trace_id) == 32 for record in caplog.records)


def test_resource_describes_enricher() -> None:
    settings = Settings(environment="test", cache_capacity=50)
    attributes = build_resource(settings).attributes
    assert attributes["service.name"] == "link-autotitle"
    assert attributes["deployment.environment"] == "test"
    assert attributes["autotitle.cache_capacity"] == 50
    assert attributes["autotitle.max_retries"] == 3


def test_disabled_telemetry_is_a_no_op() -> None:
    runtime = setup_telemetry(Settings(otel_enabled=False))
    assert runtime.provider is None
    shutdown_telemetry(runtime)
