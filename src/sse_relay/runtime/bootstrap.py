"""Runtime wiring for the relay service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sse_relay.application.lifecycle import ConnectionLifecycleHandler
from sse_relay.application.ports.durable_store import DurableStorePort
from sse_relay.application.relay import ConnectionRelay
from sse_relay.application.status import StatusProvider
from sse_relay.application.stream_bridge import StreamBridge
from sse_relay.infrastructure.http.routes import (
    ConnectionRouteDeps,
    RelayRouteDeps,
    StatusRouteDeps,
)
from sse_relay.infrastructure.state.durable_store import FileDurableStore, InMemoryDurableStore
from sse_relay.infrastructure.state.session_registry import InMemorySessionRegistry
from sse_relay.infrastructure.transport.channel import ChannelConnector
from sse_relay.runtime.settings import Settings

logger = logging.getLogger("sse_relay.runtime")


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Aggregated runtime components for the relay service.

    One registry per process; every route and background connection shares it.
    """

    settings: Settings
    durable_store: DurableStorePort
    registry: InMemorySessionRegistry
    lifecycle: ConnectionLifecycleHandler
    relay: ConnectionRelay
    connector: ChannelConnector
    bridge: StreamBridge
    status_provider: StatusProvider
    relay_deps_provider: Callable[[], RelayRouteDeps]
    connection_deps_provider: Callable[[], ConnectionRouteDeps]
    status_deps_provider: Callable[[], StatusRouteDeps]


def build_runtime(settings: Settings | None = None) -> RuntimeContext:
    resolved = settings or Settings.load()
    logger.info(
        "building relay runtime",
        extra={"data": {"durable_backend": resolved.durable_backend}},
    )

    durable_store = _build_durable_store(resolved)
    registry = InMemorySessionRegistry(durable_store, tombstone_limit=resolved.tombstone_limit)
    lifecycle = ConnectionLifecycleHandler(
        registry,
        durable_write_timeout=resolved.durable_write_timeout_seconds,
    )
    relay = ConnectionRelay(registry, send_timeout=resolved.send_timeout_seconds)
    connector = ChannelConnector(lifecycle, buffer_size=resolved.channel_buffer_size)
    bridge = StreamBridge(connector, connect_timeout=resolved.connect_timeout_seconds)
    status_provider = StatusProvider(registry)

    relay_deps = RelayRouteDeps(relay=relay, bridge=bridge, sse_ping_seconds=resolved.sse_ping_seconds)
    connection_deps = ConnectionRouteDeps(lifecycle=lifecycle)
    status_deps = StatusRouteDeps(status_provider=status_provider)

    return RuntimeContext(
        settings=resolved,
        durable_store=durable_store,
        registry=registry,
        lifecycle=lifecycle,
        relay=relay,
        connector=connector,
        bridge=bridge,
        status_provider=status_provider,
        relay_deps_provider=lambda: relay_deps,
        connection_deps_provider=lambda: connection_deps,
        status_deps_provider=lambda: status_deps,
    )


async def close_runtime_resources(runtime: RuntimeContext) -> None:
    await runtime.connector.aclose()


def _build_durable_store(settings: Settings) -> DurableStorePort:
    if settings.durable_backend == "file":
        logger.info(
            "using file durable store",
            extra={"data": {"path": str(settings.durable_path)}},
        )
        return FileDurableStore(settings.durable_path)
    return InMemoryDurableStore()


__all__ = ["RuntimeContext", "build_runtime", "close_runtime_resources"]
