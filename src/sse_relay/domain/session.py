"""Session identity and the states a session can be observed in."""

from __future__ import annotations

from enum import StrEnum
from uuid import uuid4

SESSION_KEY_PREFIX = "session:"


class SessionState(StrEnum):
    """Observable states of a session identifier within one process."""

    UNKNOWN = "unknown"
    OPEN = "open"
    # Durable record present but no live handle in this process; the peer must reconnect.
    DETACHED = "detached"
    CLOSED = "closed"


def mint_session_id() -> str:
    """Return a fresh, never-reused session identifier."""

    return str(uuid4())


def session_key(session_id: str) -> str:
    """Return the durable-store key that marks ``session_id`` as existing."""

    if not session_id:
        raise ValueError("session_id must not be empty")
    return f"{SESSION_KEY_PREFIX}{session_id}"


def classify_session(*, durable: bool, live: bool, retired: bool = False) -> SessionState:
    """Derive the named state from the durable and volatile facets."""

    if live and not durable:
        raise ValueError("live connection without a durable record")
    if live:
        return SessionState.OPEN
    if durable:
        return SessionState.DETACHED
    if retired:
        return SessionState.CLOSED
    return SessionState.UNKNOWN


__all__ = [
    "SESSION_KEY_PREFIX",
    "SessionState",
    "classify_session",
    "mint_session_id",
    "session_key",
]
