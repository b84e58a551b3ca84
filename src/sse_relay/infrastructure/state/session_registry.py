"""In-memory session registry backed by a durable existence store."""

from __future__ import annotations

import logging
from collections import OrderedDict
from threading import Lock

from sse_relay.application.ports.connection import ConnectionPort
from sse_relay.application.ports.durable_store import DurableStorePort
from sse_relay.application.ports.session_registry import SessionRegistryPort
from sse_relay.domain.session import (
    SESSION_KEY_PREFIX,
    SessionState,
    classify_session,
    session_key,
)

logger = logging.getLogger("sse_relay.state")


class InMemorySessionRegistry(SessionRegistryPort):
    """Bidirectional session/handle index guarded by a single lock.

    The forward map (session id -> handle) answers relay lookups; the reverse
    map (handle identity -> session id) lets close and error events find
    their session without scanning. Durable-store calls are made outside the
    lock; callers order them so that a live handle never exists without a
    durable record.
    """

    def __init__(self, store: DurableStorePort, *, tombstone_limit: int = 10_000) -> None:
        if tombstone_limit <= 0:
            raise ValueError("tombstone_limit must be positive")
        self._store = store
        self._tombstone_limit = tombstone_limit
        self._handles: dict[str, ConnectionPort] = {}
        # id(handle) -> (handle, session id); the handle is kept so its id() is not recycled
        self._owners: dict[int, tuple[ConnectionPort, str]] = {}
        self._retired: OrderedDict[str, None] = OrderedDict()
        self._lock = Lock()

    # ------------------------------------------------------------------
    # volatile handles

    def register(self, session_id: str, connection: ConnectionPort) -> ConnectionPort | None:
        if not session_id:
            raise ValueError("session_id must not be empty")
        with self._lock:
            displaced = self._handles.get(session_id)
            if displaced is connection:
                return None
            if displaced is not None:
                self._owners.pop(id(displaced), None)
            self._handles[session_id] = connection
            self._owners[id(connection)] = (connection, session_id)
        if displaced is not None:
            logger.info("session handle superseded", extra={"data": {"session_id": session_id}})
        return displaced

    def lookup(self, session_id: str) -> ConnectionPort | None:
        with self._lock:
            return self._handles.get(session_id)

    def unregister(self, session_id: str) -> None:
        with self._lock:
            self._handles.pop(session_id, None)

    def owner_of(self, connection: ConnectionPort) -> str | None:
        with self._lock:
            entry = self._owners.get(id(connection))
        return entry[1] if entry is not None else None

    def release(self, connection: ConnectionPort) -> str | None:
        with self._lock:
            entry = self._owners.pop(id(connection), None)
            if entry is None:
                return None
            session_id = entry[1]
            current = self._handles.get(session_id)
            if current is not None and current is not connection:
                # The session was re-opened on a newer handle after this one was unregistered.
                return None
            if current is connection:
                del self._handles[session_id]
            self._retire(session_id)
        return session_id

    def live_count(self) -> int:
        with self._lock:
            return len(self._handles)

    def is_retired(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._retired

    def _retire(self, session_id: str) -> None:
        self._retired[session_id] = None
        self._retired.move_to_end(session_id)
        while len(self._retired) > self._tombstone_limit:
            self._retired.popitem(last=False)

    # ------------------------------------------------------------------
    # durable existence markers

    def mark_durable(self, session_id: str) -> None:
        self._store.put(session_key(session_id), True)

    def clear_durable(self, session_id: str) -> None:
        # A handle must never outlive its durable record, so drop it first.
        with self._lock:
            self._handles.pop(session_id, None)
        self._store.delete(session_key(session_id))

    def is_durable(self, session_id: str) -> bool:
        if not session_id:
            return False
        return bool(self._store.get(session_key(session_id)))

    def durable_count(self) -> int:
        return len(self._store.keys(SESSION_KEY_PREFIX))

    # ------------------------------------------------------------------
    # observation

    def state_of(self, session_id: str) -> SessionState:
        durable = self.is_durable(session_id)
        with self._lock:
            live = session_id in self._handles
            retired = session_id in self._retired
        # A close can land between the two reads; report the safe side.
        return classify_session(durable=durable, live=live and durable, retired=retired)


__all__ = ["InMemorySessionRegistry"]
