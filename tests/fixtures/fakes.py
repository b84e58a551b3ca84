from __future__ import annotations

import asyncio
import time

from sse_relay.domain.exceptions import ConnectionClosedError, DurableStoreError, TransportError
from sse_relay.infrastructure.state.durable_store import InMemoryDurableStore


class FakeConnection:
    """Connection double that records frames and replays queued inbound items.

    Queue strings for inbound payloads, a ``ConnectionClosedError`` to simulate a
    close event, or any other exception to simulate a transport error.
    """

    def __init__(self, *, fail_send: bool = False, send_delay: float = 0.0) -> None:
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_send = fail_send
        self.send_delay = send_delay
        self._inbound: asyncio.Queue[str | BaseException] = asyncio.Queue()

    def push(self, item: str | BaseException) -> None:
        self._inbound.put_nowait(item)

    def push_close(self, code: int = 1000, reason: str = "") -> None:
        self.push(ConnectionClosedError(code, reason, was_clean=code == 1000))

    async def send_text(self, data: str) -> None:
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_send:
            raise TransportError("send failed")
        self.sent.append(data)

    async def receive_text(self) -> str:
        item = await self._inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed_with is None:
            self.closed_with = (code, reason)


class FakeConnector:
    """Connector returning pre-built client connections."""

    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.requested: list[str] = []

    async def connect(self, session_id: str) -> FakeConnection:
        self.requested.append(session_id)
        return self.connection


class FailingDurableStore(InMemoryDurableStore):
    """Durable store whose writes can be slowed down or switched to fail."""

    def __init__(self, *, fail_put: bool = False, fail_delete: bool = False, put_delay: float = 0.0) -> None:
        super().__init__()
        self.fail_put = fail_put
        self.fail_delete = fail_delete
        self.put_delay = put_delay

    def put(self, key: str, value: bool) -> None:
        if self.put_delay:
            time.sleep(self.put_delay)
        if self.fail_put:
            raise DurableStoreError(f"put {key} failed")
        super().put(key, value)

    def delete(self, key: str) -> None:
        if self.fail_delete:
            raise DurableStoreError(f"delete {key} failed")
        super().delete(key)
