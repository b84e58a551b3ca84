"""Outcome of relaying one payload to a session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from sse_relay.domain.exceptions import (
    ConnectionLostError,
    RelayFailedError,
    SessionUnknownError,
)


class RelayOutcome(StrEnum):
    DELIVERED = "delivered"
    SESSION_UNKNOWN = "session_unknown"
    CONNECTION_LOST = "connection_lost"
    RELAY_FAILED = "relay_failed"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @classmethod
    def from_error(cls, exc: Exception) -> RelayOutcome:
        if isinstance(exc, SessionUnknownError):
            return cls.SESSION_UNKNOWN
        if isinstance(exc, ConnectionLostError):
            return cls.CONNECTION_LOST
        if isinstance(exc, RelayFailedError):
            return cls.RELAY_FAILED
        raise TypeError(f"no relay outcome for {type(exc).__name__}")


_STATUS_CODES: dict[RelayOutcome, int] = {
    RelayOutcome.DELIVERED: 200,
    RelayOutcome.SESSION_UNKNOWN: 404,
    RelayOutcome.CONNECTION_LOST: 410,
    RelayOutcome.RELAY_FAILED: 500,
}


@dataclass(frozen=True, slots=True)
class RelayResult:
    """Classified result of a single relay attempt."""

    session_id: str
    outcome: RelayOutcome
    detail: str | None = None

    @property
    def delivered(self) -> bool:
        return self.outcome is RelayOutcome.DELIVERED

    @property
    def status_code(self) -> int:
        return self.outcome.status_code

    @classmethod
    def failed(cls, session_id: str, exc: Exception) -> RelayResult:
        return cls(session_id=session_id, outcome=RelayOutcome.from_error(exc), detail=str(exc))


__all__ = ["RelayOutcome", "RelayResult"]
