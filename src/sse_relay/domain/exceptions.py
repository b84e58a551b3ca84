"""Domain-specific exception types."""

from __future__ import annotations


class SessionUnknownError(LookupError):
    """Raised when no durable record exists for a session identifier."""


class ConnectionLostError(LookupError):
    """Raised when a session is durably valid but has no live handle here."""


class RelayFailedError(RuntimeError):
    """Raised when sending over a present handle fails at the transport level."""


class MalformedPayloadError(ValueError):
    """Raised when an inbound payload cannot be parsed as JSON."""


class TransportError(RuntimeError):
    """Raised by connection adapters when a send cannot be completed."""


class DurableStoreError(RuntimeError):
    """Raised when the durable existence store cannot be written."""


class StreamEstablishmentError(RuntimeError):
    """Raised when the bridge cannot establish its bidirectional connection."""


class ConnectionClosedError(Exception):
    """Signals that the peer closed the connection."""

    def __init__(self, code: int = 1000, reason: str = "", *, was_clean: bool = True) -> None:
        super().__init__(f"connection closed (code={code} reason={reason!r} clean={was_clean})")
        self.code = code
        self.reason = reason
        self.was_clean = was_clean


__all__ = [
    "ConnectionClosedError",
    "ConnectionLostError",
    "DurableStoreError",
    "MalformedPayloadError",
    "RelayFailedError",
    "SessionUnknownError",
    "StreamEstablishmentError",
    "TransportError",
]
