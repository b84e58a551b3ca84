"""Relay of externally posted messages onto live session connections."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import SpanKind

from sse_relay.application.ports.session_registry import SessionRegistryPort
from sse_relay.domain.exceptions import (
    ConnectionLostError,
    RelayFailedError,
    SessionUnknownError,
    TransportError,
)
from sse_relay.domain.frames import message_frame
from sse_relay.domain.relay import RelayOutcome, RelayResult

logger = logging.getLogger("sse_relay.relay")


class ConnectionRelay:
    """Classifies and performs a single best-effort delivery per call.

    No retries happen here; a caller that receives ``CONNECTION_LOST`` is
    expected to open a new stream rather than retry the same session.
    """

    def __init__(self, registry: SessionRegistryPort, *, send_timeout: float = 5.0) -> None:
        if send_timeout <= 0:
            raise ValueError("send_timeout must be positive")
        self._registry = registry
        self._send_timeout = send_timeout

    async def relay(self, session_id: str, message: Any) -> RelayResult:
        tracer = trace.get_tracer("sse_relay.relay")
        with tracer.start_as_current_span(
            "relay.deliver",
            kind=SpanKind.INTERNAL,
            attributes={"relay.session_id": session_id},
        ) as span:
            try:
                await self._deliver(session_id, message_frame(message))
            except (SessionUnknownError, ConnectionLostError, RelayFailedError) as exc:
                result = RelayResult.failed(session_id, exc)
                logger.warning(
                    "relay not delivered",
                    extra={
                        "data": {
                            "session_id": session_id,
                            "outcome": result.outcome.value,
                            "detail": result.detail,
                        }
                    },
                )
            else:
                result = RelayResult(session_id=session_id, outcome=RelayOutcome.DELIVERED)
                logger.debug("relay delivered", extra={"data": {"session_id": session_id}})
            span.set_attribute("relay.outcome", result.outcome.value)
        return result

    async def _deliver(self, session_id: str, frame: str) -> None:
        if not self._registry.is_durable(session_id):
            raise SessionUnknownError(f"session {session_id} not found")

        connection = self._registry.lookup(session_id)
        if connection is None:
            raise ConnectionLostError(f"session {session_id} has no live connection in this process")

        try:
            await asyncio.wait_for(connection.send_text(frame), timeout=self._send_timeout)
        except (TransportError, TimeoutError) as exc:
            # The durable record stays until the connection's own close/error event.
            self._registry.unregister(session_id)
            reason = str(exc) or type(exc).__name__
            raise RelayFailedError(f"relay to session {session_id} failed: {reason}") from exc


__all__ = ["ConnectionRelay"]
