from __future__ import annotations

from sse_relay.application.status import StatusProvider
from sse_relay.domain.session import SessionState
from sse_relay.infrastructure.state.durable_store import InMemoryDurableStore
from sse_relay.infrastructure.state.session_registry import InMemorySessionRegistry
from tests.fixtures.fakes import FakeConnection


def test_snapshot_counts_live_and_detached_sessions() -> None:
    registry = InMemorySessionRegistry(InMemoryDurableStore())
    for session_id in ("a", "b", "c"):
        registry.mark_durable(session_id)
    registry.register("a", FakeConnection())

    snapshot = StatusProvider(registry).snapshot()

    assert snapshot == {
        "status": "ok",
        "live_connections": 1,
        "durable_sessions": 3,
        "detached_sessions": 2,
    }


def test_session_state_delegates_to_registry() -> None:
    registry = InMemorySessionRegistry(InMemoryDurableStore())
    registry.mark_durable("a")

    provider = StatusProvider(registry)

    assert provider.session_state("a") is SessionState.DETACHED
    assert provider.session_state("zzz") is SessionState.UNKNOWN
