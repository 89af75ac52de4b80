"""
Shared configuration management for the page render service.
"""

from typing import Optional

from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", validation_alias=AliasChoices("RENDER_ENV", "env"))
    log_level: str = Field(default="info", validation_alias=AliasChoices("RENDER_LOG_LEVEL", "log_level"))

    # Durable tier
    durable_backend: str = Field(default="redis", validation_alias=AliasChoices("RENDER_DURABLE_BACKEND", "durable_backend"))
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias=AliasChoices("RENDER_REDIS_URL", "redis_url"))
    cache_collection: str = Field(default="cache", validation_alias=AliasChoices("RENDER_CACHE_COLLECTION", "cache_collection"))

    # Firebase service account
    firebase_project_id: str = Field(default="", validation_alias=AliasChoices("FIREBASE_PROJECT_ID", "firebase_project_id"))
    firebase_private_key_id: str = Field(default="", validation_alias=AliasChoices("FIREBASE_PRIVATE_KEY_ID", "firebase_private_key_id"))
    firebase_private_key: str = Field(default="", validation_alias=AliasChoices("FIREBASE_PRIVATE_KEY", "firebase_private_key"))
    firebase_client_email: str = Field(default="", validation_alias=AliasChoices("FIREBASE_CLIENT_EMAIL", "firebase_client_email"))
    firebase_client_id: str = Field(default="", validation_alias=AliasChoices("FIREBASE_CLIENT_ID", "firebase_client_id"))
    firebase_auth_uri: str = Field(
        default="https://accounts.google.com/o/oauth2/auth",
        validation_alias=AliasChoices("FIREBASE_AUTH_URI", "firebase_auth_uri"),
    )
    firebase_token_uri: str = Field(
        default="https://oauth2.googleapis.com/token",
        validation_alias=AliasChoices("FIREBASE_TOKEN_URI", "firebase_token_uri"),
    )
    firebase_auth_provider_cert_url: str = Field(
        default="https://www.googleapis.com/oauth2/v1/certs",
        validation_alias=AliasChoices("FIREBASE_AUTH_PROVIDER_CERT_URL", "firebase_auth_provider_cert_url"),
    )
    firebase_client_cert_url: str = Field(default="", validation_alias=AliasChoices("FIREBASE_CLIENT_CERT_URL", "firebase_client_cert_url"))
    firebase_database_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("FIREBASE_DATABASE_URL", "firebase_database_url"))

    # Renderer
    renderer_url: str = Field(default="http://localhost:4200", validation_alias=AliasChoices("RENDER_RENDERER_URL", "renderer_url"))
    renderer_timeout: float = Field(default=30.0, validation_alias=AliasChoices("RENDER_RENDERER_TIMEOUT", "renderer_timeout"))
    base_href: str = Field(default="/", validation_alias=AliasChoices("RENDER_BASE_HREF", "base_href"))

    # Cache behaviour
    single_flight: bool = Field(default=True, validation_alias=AliasChoices("RENDER_SINGLE_FLIGHT", "single_flight"))
    durable_write_mode: str = Field(default="inline", validation_alias=AliasChoices("RENDER_DURABLE_WRITE_MODE", "durable_write_mode"))
    durable_write_attempts: int = Field(default=3, validation_alias=AliasChoices("RENDER_DURABLE_WRITE_ATTEMPTS", "durable_write_attempts"))
    pattern_sweep_durable: bool = Field(default=False, validation_alias=AliasChoices("RENDER_PATTERN_SWEEP_DURABLE", "pattern_sweep_durable"))

    # Cache warming
    hot_pages_file: Optional[str] = Field(default=None, validation_alias=AliasChoices("RENDER_HOT_PAGES_FILE", "hot_pages_file"))
    warm_concurrency: int = Field(default=5, validation_alias=AliasChoices("RENDER_WARM_CONCURRENCY", "warm_concurrency"))

    # Observability
    enable_tracing: bool = Field(default=False, validation_alias=AliasChoices("RENDER_ENABLE_TRACING", "enable_tracing"))
    otel_exporter: Optional[str] = Field(default=None, validation_alias=AliasChoices("RENDER_OTEL_EXPORTER", "otel_exporter"))
    enable_console_tracing: bool = Field(default=False, validation_alias=AliasChoices("RENDER_ENABLE_CONSOLE_TRACING", "enable_console_tracing"))

    def firebase_credentials(self) -> dict:
        """Service-account mapping in the shape google-auth expects."""
        return {
            "type": "service_account",
            "project_id": self.firebase_project_id,
            "private_key_id": self.firebase_private_key_id,
            "private_key": self.firebase_private_key.replace("\\n", "\n"),
            "client_email": self.firebase_client_email,
            "client_id": self.firebase_client_id,
            "auth_uri": self.firebase_auth_uri,
            "token_uri": self.firebase_token_uri,
            "auth_provider_x509_cert_url": self.firebase_auth_provider_cert_url,
            "client_x509_cert_url": self.firebase_client_cert_url,
        }


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
