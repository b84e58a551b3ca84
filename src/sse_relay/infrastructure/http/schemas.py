"""Request and response schemas for the relay HTTP API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class MessageRequest(BaseModel):
    """Body of ``POST /message``."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    message: Any

    @field_validator("message")
    @classmethod
    def _require_content(cls, value: Any) -> Any:
        if not value:
            raise ValueError("message must not be empty")
        return value


@dataclass(frozen=True, slots=True)
class MessageResponse:
    status: str
    session_id: str


@dataclass(frozen=True, slots=True)
class SessionStateResponse:
    session_id: str
    state: str


@dataclass(frozen=True, slots=True)
class RelayStatusResponse:
    status: str
    live_connections: int = 0
    durable_sessions: int = 0
    detached_sessions: int = 0


__all__ = [
    "MessageRequest",
    "MessageResponse",
    "RelayStatusResponse",
    "SessionStateResponse",
]
