from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "alumni-directory-api"
    environment: str = "dev"
    http_host: str = "0.0.0.0"
    http_port: int = 3001
    store_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_command_timeout_seconds: float = 15.0
    store_connect_max_attempts: int = 5
    store_connect_retry_base_seconds: float = 1.0
    store_connect_retry_max_seconds: float = 30.0
    volunteer_token: str | None = None
    moderation_email: str = "alumni-moderation@example.org"
    mail_relay_url: str | None = None
    mail_relay_api_key: str | None = None
    mail_sender: str = "alumni-directory@example.org"
    mail_timeout_seconds: float = 5.0
    cors_allow_origins: list[str] = ["http://localhost:5173"]
    otel_enabled: bool = True
    otel_service_name: str = "alumni-directory-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="ALUMNI_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
