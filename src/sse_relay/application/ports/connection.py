"""Port describing a live bidirectional connection."""

from __future__ import annotations

from typing import Protocol


class ConnectionPort(Protocol):
    """Bidirectional text connection owned by one session.

    ``send_text`` raises ``TransportError`` when the frame cannot be written;
    ``receive_text`` raises ``ConnectionClosedError`` once the peer closes.
    """

    async def send_text(self, data: str) -> None:
        """Write one frame as a single unit."""

    async def receive_text(self) -> str:
        """Wait for the next inbound frame."""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection; closing twice is a no-op."""


class ConnectorPort(Protocol):
    """Opens bidirectional connections on behalf of stream clients."""

    async def connect(self, session_id: str) -> ConnectionPort:
        """Return the client end of a new connection tagged with ``session_id``."""


__all__ = ["ConnectionPort", "ConnectorPort"]
