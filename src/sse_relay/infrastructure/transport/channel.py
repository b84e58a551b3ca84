"""In-process bidirectional connections over anyio memory object streams."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from sse_relay.application.lifecycle import ConnectionLifecycleHandler
from sse_relay.application.ports.connection import ConnectionPort, ConnectorPort
from sse_relay.domain.exceptions import ConnectionClosedError, TransportError

logger = logging.getLogger("sse_relay.transport")

CLOSE_ABNORMAL = 1006
CLOSE_FRAME_TIMEOUT_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class CloseFrame:
    code: int
    reason: str


Item = str | CloseFrame


class ChannelConnection(ConnectionPort):
    """One end of an in-process connection pair."""

    def __init__(
        self,
        send_stream: MemoryObjectSendStream[Item],
        receive_stream: MemoryObjectReceiveStream[Item],
        *,
        name: str,
    ) -> None:
        self.name = name
        self._send_stream = send_stream
        self._receive_stream = receive_stream
        self._send_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_text(self, data: str) -> None:
        if self._closed:
            raise TransportError(f"{self.name} is closed")
        async with self._send_lock:
            try:
                await self._send_stream.send(data)
            except (anyio.BrokenResourceError, anyio.ClosedResourceError) as exc:
                raise TransportError(f"{self.name}: peer is gone") from exc

    async def receive_text(self) -> str:
        try:
            item = await self._receive_stream.receive()
        except anyio.EndOfStream as exc:
            await self._shutdown()
            raise ConnectionClosedError(CLOSE_ABNORMAL, "", was_clean=False) from exc
        except anyio.ClosedResourceError as exc:
            raise ConnectionClosedError(CLOSE_ABNORMAL, "closed locally", was_clean=False) from exc
        if isinstance(item, CloseFrame):
            await self._shutdown()
            raise ConnectionClosedError(item.code, item.reason, was_clean=True)
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._closed:
            return
        self._closed = True
        # Runs from finally blocks of cancelled consumers; the peer must still see the close.
        with anyio.CancelScope(shield=True):
            with anyio.move_on_after(CLOSE_FRAME_TIMEOUT_SECONDS):
                try:
                    await self._send_stream.send(CloseFrame(code=code, reason=reason))
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    logger.debug("close frame not delivered", extra={"data": {"connection": self.name}})
            await self._shutdown()

    async def _shutdown(self) -> None:
        self._closed = True
        await self._send_stream.aclose()
        await self._receive_stream.aclose()


def open_channel_pair(*, name: str, buffer_size: int = 64) -> tuple[ChannelConnection, ChannelConnection]:
    """Return ``(client, server)`` ends joined by two bounded streams."""

    if buffer_size <= 0:
        raise ValueError("buffer_size must be positive")
    to_server_send, to_server_receive = anyio.create_memory_object_stream[Item](buffer_size)
    to_client_send, to_client_receive = anyio.create_memory_object_stream[Item](buffer_size)
    client = ChannelConnection(to_server_send, to_client_receive, name=f"{name}/client")
    server = ChannelConnection(to_client_send, to_server_receive, name=f"{name}/server")
    return client, server


class ChannelConnector(ConnectorPort):
    """Opens in-process connections and runs their lifecycle in background tasks."""

    def __init__(self, lifecycle: ConnectionLifecycleHandler, *, buffer_size: int = 64) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self._lifecycle = lifecycle
        self._buffer_size = buffer_size
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def connect(self, session_id: str) -> ConnectionPort:
        client, server = open_channel_pair(name=session_id, buffer_size=self._buffer_size)
        task = asyncio.create_task(
            self._lifecycle.serve(session_id, server),
            name=f"relay-connection-{session_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return client

    async def aclose(self) -> None:
        """Cancel every running connection task and wait for them to finish."""

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("channel connector closed", extra={"data": {"cancelled": len(tasks)}})

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "connection task failed",
                exc_info=exc,
                extra={"data": {"task": task.get_name()}},
            )


__all__ = ["ChannelConnection", "ChannelConnector", "CloseFrame", "open_channel_pair"]
