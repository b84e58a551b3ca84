from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from sse_relay.domain.session import SessionState
from sse_relay.infrastructure.state.durable_store import InMemoryDurableStore
from sse_relay.infrastructure.state.session_registry import InMemorySessionRegistry
from tests.fixtures.fakes import FakeConnection


def _registry(**kwargs: int) -> InMemorySessionRegistry:
    return InMemorySessionRegistry(InMemoryDurableStore(), **kwargs)


def test_register_and_lookup() -> None:
    registry = _registry()
    connection = FakeConnection()

    assert registry.register("s-1", connection) is None

    assert registry.lookup("s-1") is connection
    assert registry.owner_of(connection) == "s-1"
    assert registry.live_count() == 1


def test_register_returns_displaced_handle() -> None:
    registry = _registry()
    first, second = FakeConnection(), FakeConnection()
    registry.register("s-1", first)

    displaced = registry.register("s-1", second)

    assert displaced is first
    assert registry.owner_of(first) is None
    assert registry.release(first) is None
    assert registry.lookup("s-1") is second


def test_register_same_handle_twice_is_idempotent() -> None:
    registry = _registry()
    connection = FakeConnection()
    registry.register("s-1", connection)

    assert registry.register("s-1", connection) is None
    assert registry.live_count() == 1


def test_register_rejects_empty_session_id() -> None:
    with pytest.raises(ValueError):
        _registry().register("", FakeConnection())


def test_release_retires_session() -> None:
    registry = _registry()
    connection = FakeConnection()
    registry.register("s-1", connection)

    assert registry.release(connection) == "s-1"

    assert registry.lookup("s-1") is None
    assert registry.is_retired("s-1")
    assert registry.state_of("s-1") is SessionState.CLOSED


def test_unregister_keeps_reverse_entry_for_later_release() -> None:
    registry = _registry()
    connection = FakeConnection()
    registry.mark_durable("s-1")
    registry.register("s-1", connection)

    registry.unregister("s-1")

    assert registry.state_of("s-1") is SessionState.DETACHED
    assert registry.release(connection) == "s-1"


def test_durable_markers() -> None:
    registry = _registry()

    registry.mark_durable("s-1")
    assert registry.is_durable("s-1")
    assert registry.durable_count() == 1

    registry.clear_durable("s-1")
    assert not registry.is_durable("s-1")
    assert registry.durable_count() == 0
    assert not registry.is_durable("")


def test_clear_durable_drops_live_handle_first() -> None:
    registry = _registry()
    registry.mark_durable("s-1")
    registry.register("s-1", FakeConnection())

    registry.clear_durable("s-1")

    assert registry.lookup("s-1") is None
    assert registry.state_of("s-1") is SessionState.UNKNOWN


def test_live_handle_without_durable_record_reads_as_unknown() -> None:
    registry = _registry()
    registry.register("s-1", FakeConnection())

    assert registry.state_of("s-1") is SessionState.UNKNOWN


def test_tombstones_are_bounded() -> None:
    registry = _registry(tombstone_limit=2)
    for session_id in ("a", "b", "c"):
        connection = FakeConnection()
        registry.register(session_id, connection)
        registry.release(connection)

    assert not registry.is_retired("a")
    assert registry.is_retired("b")
    assert registry.is_retired("c")


def test_concurrent_register_and_release_leave_registry_empty() -> None:
    registry = _registry()

    def churn(index: int) -> None:
        connection = FakeConnection()
        registry.register(f"s-{index}", connection)
        registry.release(connection)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(churn, range(200)))

    assert registry.live_count() == 0


def test_unregister_then_lookup_is_absent_and_idempotent() -> None:
    registry = _registry()
    registry.register("s-1", FakeConnection())

    registry.unregister("s-1")
    registry.unregister("s-1")

    assert registry.lookup("s-1") is None


def test_release_of_unregistered_handle_spares_newer_owner() -> None:
    registry = _registry()
    old, new = FakeConnection(), FakeConnection()
    registry.mark_durable("s-1")
    registry.register("s-1", old)
    registry.unregister("s-1")
    registry.register("s-1", new)

    assert registry.release(old) is None

    assert registry.lookup("s-1") is new
    assert not registry.is_retired("s-1")
    assert registry.release(new) == "s-1"
