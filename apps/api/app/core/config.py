from functools import lru_cache
from secrets import token_urlsafe
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_prefix: str = ""
    project_name: str = "Accounts API"
    environment: str = "development"
    cors_origins: List[str] = []
    secret_key: str = Field(default_factory=lambda: token_urlsafe(32))
    access_token_expire_minutes: int = Field(default=60, ge=1)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    storage_backend: Literal["sqlalchemy", "memory"] = Field(
        default="sqlalchemy",
        description="Persistence backend for user records",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy async connection string for the primary database",
    )

    mail_backend: Literal["smtp", "memory"] = Field(
        default="memory",
        description="Delivery backend for verification and password reset emails",
    )
    smtp_host: str = "localhost"
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    mail_sender: str = "no-reply@example.com"
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used when building links sent by email",
    )

    email_verification_required: bool = True
    verification_token_ttl_minutes: int = Field(default=60 * 24, ge=1)
    reset_token_ttl_minutes: int = Field(default=60, ge=1)

    log_level: str = "INFO"
    log_json: bool = False

    enable_prometheus_metrics: bool = Field(
        default=True, description="Expose Prometheus metrics endpoint when true"
    )
    prometheus_metrics_path: str = Field(
        default="/metrics/prometheus",
        description="Path where scraped Prometheus metrics are served",
    )
    otel_exporter_otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP HTTP endpoint for exporting traces",
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None,
        description="Comma separated key=value pairs added to OTLP requests",
    )
    otel_service_name: str | None = Field(
        default=None, description="Optional override for OpenTelemetry service.name"
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
