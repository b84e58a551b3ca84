"""JSON frames exchanged over the bidirectional connection."""

from __future__ import annotations

import json
from typing import Any

from sse_relay.domain.exceptions import MalformedPayloadError

FRAME_CONNECTED = "connected"
FRAME_MESSAGE = "message"
FRAME_ERROR = "error"

PROCESSING_FAILED = "Failed to process message"


def _encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def connected_frame(session_id: str) -> str:
    return _encode({"type": FRAME_CONNECTED, "sessionId": session_id})


def message_frame(content: Any) -> str:
    return _encode({"type": FRAME_MESSAGE, "content": content})


def error_frame(content: str = PROCESSING_FAILED) -> str:
    return _encode({"type": FRAME_ERROR, "content": content})


def parse_inbound(raw: str) -> Any:
    """Decode an inbound payload or raise ``MalformedPayloadError``."""

    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedPayloadError(f"inbound payload is not valid JSON: {exc}") from exc


def echo_content(data: Any, raw: str) -> Any:
    """Pick the reply content for a parsed inbound payload.

    Objects carrying a truthy ``message`` field are answered with that field;
    everything else is echoed back verbatim with an ``Echo:`` prefix.
    """

    if isinstance(data, dict):
        message = data.get("message")
        if message:
            return message
    return f"Echo: {raw}"


def acknowledged_session(raw: str) -> str | None:
    """Return the session id named by a ``connected`` frame, else None."""

    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or data.get("type") != FRAME_CONNECTED:
        return None
    session_id = data.get("sessionId")
    return session_id if isinstance(session_id, str) and session_id else None


__all__ = [
    "FRAME_CONNECTED",
    "FRAME_ERROR",
    "FRAME_MESSAGE",
    "PROCESSING_FAILED",
    "acknowledged_session",
    "connected_frame",
    "echo_content",
    "error_frame",
    "message_frame",
    "parse_inbound",
]
