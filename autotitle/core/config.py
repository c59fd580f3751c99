from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: str = "dev"
    debounce_seconds: float = 0.3
    queue_pause_seconds: float = 0.1
    retry_interval_seconds: float = 5.0
    retry_base_delay_seconds: float = 1.0
    max_retries: int = 3
    cache_capacity: int = 1000
    request_timeout_seconds: float = 10.0
    user_agent: str = "link-autotitle/1.0"
    embed_endpoint: str = "https://noembed.com/embed"
    otel_enabled: bool = True
    otel_service_name: str = "link-autotitle"
    otel_exporter_otlp_endpoint: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="AUTOTITLE_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
