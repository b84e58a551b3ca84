from __future__ import annotations

import asyncio
import json

import pytest

from sse_relay.application.lifecycle import ConnectionLifecycleHandler
from sse_relay.application.relay import ConnectionRelay
from sse_relay.domain.relay import RelayOutcome
from sse_relay.infrastructure.state.durable_store import InMemoryDurableStore
from sse_relay.infrastructure.state.session_registry import InMemorySessionRegistry
from tests.fixtures.fakes import FakeConnection

pytestmark = pytest.mark.anyio("asyncio")


def _registry() -> InMemorySessionRegistry:
    return InMemorySessionRegistry(InMemoryDurableStore())


async def _open(registry: InMemorySessionRegistry, session_id: str, **kwargs: object) -> FakeConnection:
    connection = FakeConnection(**kwargs)  # type: ignore[arg-type]
    opened = await ConnectionLifecycleHandler(registry).on_open(session_id, connection)
    assert opened
    connection.sent.clear()
    return connection


async def test_relay_delivers_message_frame_to_open_session() -> None:
    registry = _registry()
    connection = await _open(registry, "s-1")
    relay = ConnectionRelay(registry)

    result = await relay.relay("s-1", "hello")

    assert result.outcome is RelayOutcome.DELIVERED
    assert [json.loads(frame) for frame in connection.sent] == [{"type": "message", "content": "hello"}]


async def test_relay_to_never_seen_session_is_unknown() -> None:
    relay = ConnectionRelay(_registry())

    result = await relay.relay("never-seen", "hello")

    assert result.outcome is RelayOutcome.SESSION_UNKNOWN
    assert result.status_code == 404


async def test_relay_with_durable_record_but_no_handle_is_connection_lost() -> None:
    registry = _registry()
    await _open(registry, "s-1")
    registry.unregister("s-1")

    result = await ConnectionRelay(registry).relay("s-1", "hello")

    assert result.outcome is RelayOutcome.CONNECTION_LOST
    assert result.status_code == 410


async def test_send_failure_is_relay_failed_then_connection_lost() -> None:
    registry = _registry()
    await _open(registry, "s-1", fail_send=True)
    relay = ConnectionRelay(registry)

    first = await relay.relay("s-1", "hello")
    second = await relay.relay("s-1", "hello")

    assert first.outcome is RelayOutcome.RELAY_FAILED
    assert second.outcome is RelayOutcome.CONNECTION_LOST
    assert registry.is_durable("s-1")


async def test_send_timeout_is_relay_failed() -> None:
    registry = _registry()
    await _open(registry, "s-1", send_delay=0.5)
    relay = ConnectionRelay(registry, send_timeout=0.05)

    result = await relay.relay("s-1", "hello")

    assert result.outcome is RelayOutcome.RELAY_FAILED
    assert registry.lookup("s-1") is None


async def test_relay_after_error_event_is_unknown() -> None:
    registry = _registry()
    lifecycle = ConnectionLifecycleHandler(registry)
    connection = FakeConnection()
    await lifecycle.on_open("s-1", connection)

    await lifecycle.on_error(connection, OSError("reset by peer"))
    result = await ConnectionRelay(registry).relay("s-1", "hello")

    assert result.outcome is RelayOutcome.SESSION_UNKNOWN


async def test_concurrent_relays_each_deliver_exactly_once() -> None:
    registry = _registry()
    connection = await _open(registry, "s-1")
    relay = ConnectionRelay(registry)

    results = await asyncio.gather(*(relay.relay("s-1", f"m{index}") for index in range(25)))

    assert all(result.delivered for result in results)
    contents = sorted(json.loads(frame)["content"] for frame in connection.sent)
    assert contents == sorted(f"m{index}" for index in range(25))


async def test_relay_to_one_session_does_not_reach_another() -> None:
    registry = _registry()
    first = await _open(registry, "s-1")
    second = await _open(registry, "s-2")

    await ConnectionRelay(registry).relay("s-2", "only-second")

    assert first.sent == []
    assert len(second.sent) == 1


def test_relay_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        ConnectionRelay(_registry(), send_timeout=0)
