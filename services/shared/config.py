"""Shared configuration management for the dashboard service.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_STORE_PROVIDER=rest
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-dashboard",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Invoice store configuration
    store_provider: Literal["rest", "memory"] = Field(
        default="memory",
        description="Invoice store: rest (hosted PostgREST endpoint), memory (in-process)",
    )
    store_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the hosted store (the /rest/v1 API lives under it)",
    )
    store_api_key: str = Field(
        default="",
        description="Store API key (use env var APP_STORE_API_KEY)",
    )
    store_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for a single store request",
        gt=0,
    )
    store_read_retries: int = Field(
        default=3,
        description="Attempts for read queries on transport errors (inserts are never retried)",
        ge=1,
    )

    # Dashboard configuration
    items_per_page: int = Field(
        default=6,
        description="Invoices per page in the filtered invoice listing",
        ge=1,
    )
    page_cache_enabled: bool = Field(
        default=True,
        description="Cache rendered listing views until a write revalidates them",
    )
    page_cache_max_entries: int = Field(
        default=256,
        description="Most cached views kept; least recently used views are evicted first",
        ge=1,
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
