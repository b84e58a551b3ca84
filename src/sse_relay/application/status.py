"""Registry snapshot for health checks."""

from __future__ import annotations

from sse_relay.application.ports.session_registry import SessionRegistryPort
from sse_relay.domain.session import SessionState


class StatusProvider:
    def __init__(self, registry: SessionRegistryPort) -> None:
        self._registry = registry

    def snapshot(self) -> dict[str, object]:
        live = self._registry.live_count()
        durable = self._registry.durable_count()
        return {
            "status": "ok",
            "live_connections": live,
            "durable_sessions": durable,
            "detached_sessions": max(0, durable - live),
        }

    def session_state(self, session_id: str) -> SessionState:
        return self._registry.state_of(session_id)


__all__ = ["StatusProvider"]
