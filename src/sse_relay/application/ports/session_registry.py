"""Port describing the session-addressable connection registry."""

from __future__ import annotations

from typing import Protocol

from sse_relay.application.ports.connection import ConnectionPort
from sse_relay.domain.session import SessionState


class SessionRegistryPort(Protocol):
    """Maps session ids to live handles and tracks durable existence."""

    def register(self, session_id: str, connection: ConnectionPort) -> ConnectionPort | None:
        """Store ``connection`` under ``session_id``; return any displaced handle."""

    def lookup(self, session_id: str) -> ConnectionPort | None:
        """Return the live handle for ``session_id``, if any."""

    def unregister(self, session_id: str) -> None:
        """Drop the live handle for ``session_id``; idempotent."""

    def owner_of(self, connection: ConnectionPort) -> str | None:
        """Return the session id that ``connection`` was registered under."""

    def release(self, connection: ConnectionPort) -> str | None:
        """Forget ``connection`` and retire its session id.

        Returns None when the handle is untracked or its session now belongs to
        a newer handle.
        """

    def mark_durable(self, session_id: str) -> None:
        """Record that ``session_id`` exists."""

    def clear_durable(self, session_id: str) -> None:
        """Remove the existence record; idempotent."""

    def is_durable(self, session_id: str) -> bool:
        """Return whether an existence record is present."""

    def is_retired(self, session_id: str) -> bool:
        """Return whether ``session_id`` already reached the closed state here."""

    def state_of(self, session_id: str) -> SessionState:
        """Return the named state of ``session_id``."""

    def live_count(self) -> int:
        """Return the number of live handles."""

    def durable_count(self) -> int:
        """Return the number of durable existence records."""


__all__ = ["SessionRegistryPort"]
