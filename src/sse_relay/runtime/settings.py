"""Configuration for the relay runtime."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilitySettings(BaseSettings):
    """Flags controlling logging export."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    enable_cloud_logging: bool = Field(default=False, alias="ENABLE_CLOUD_LOGGING")
    gcp_project_id: str | None = Field(default=None, alias="GCP_PROJECT_ID")


class Settings(BaseSettings):
    """Relay runtime configuration resolved from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # --- Server ---
    listen_host: str = Field(default="0.0.0.0", alias="SSE_RELAY_HOST")  # noqa: S104
    port: int = Field(default=8787, alias="SSE_RELAY_PORT", gt=0, lt=65536)

    # --- Durable store ---
    durable_backend: Literal["memory", "file"] = Field(default="memory", alias="SSE_RELAY_DURABLE_BACKEND")
    durable_path: Path = Field(default=Path(".sse-relay/sessions.json"), alias="SSE_RELAY_DURABLE_PATH")
    durable_write_timeout_seconds: float = Field(
        default=2.0, alias="SSE_RELAY_DURABLE_WRITE_TIMEOUT_SECONDS", gt=0
    )

    # --- Transport ---
    send_timeout_seconds: float = Field(default=5.0, alias="SSE_RELAY_SEND_TIMEOUT_SECONDS", gt=0)
    connect_timeout_seconds: float = Field(default=5.0, alias="SSE_RELAY_CONNECT_TIMEOUT_SECONDS", gt=0)
    channel_buffer_size: int = Field(default=64, alias="SSE_RELAY_CHANNEL_BUFFER_SIZE", gt=0)
    sse_ping_seconds: float = Field(default=15.0, alias="SSE_RELAY_SSE_PING_SECONDS", gt=0)
    tombstone_limit: int = Field(default=10_000, alias="SSE_RELAY_TOMBSTONE_LIMIT", gt=0)

    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    # --- Loader ---
    @classmethod
    def load(cls) -> Settings:
        instance = cls()
        logger = logging.getLogger("sse_relay.settings")
        logger.info("relay settings loaded: %r", instance)
        return instance


__all__ = ["ObservabilitySettings", "Settings"]
