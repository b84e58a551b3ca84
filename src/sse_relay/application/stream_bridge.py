"""Bridge from one-way event streams to session-tagged connections."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import anyio

from sse_relay.application.ports.connection import ConnectionPort, ConnectorPort
from sse_relay.domain.exceptions import ConnectionClosedError, StreamEstablishmentError
from sse_relay.domain.frames import acknowledged_session
from sse_relay.domain.session import mint_session_id

logger = logging.getLogger("sse_relay.bridge")

CLOSE_NORMAL = 1000
CLOSE_PROTOCOL_ERROR = 1002


@dataclass(slots=True)
class OpenedStream:
    """A stream whose connection has been acknowledged by the registry side."""

    session_id: str
    connection: ConnectionPort
    acknowledgement: str

    async def events(self) -> AsyncIterator[str]:
        """Yield the acknowledgement, then every inbound frame verbatim.

        Ends when the connection closes. Leaving the iterator early closes the
        connection so the registry side observes a clean close.
        """

        try:
            yield self.acknowledgement
            while True:
                try:
                    frame = await self.connection.receive_text()
                except ConnectionClosedError as closed:
                    logger.info(
                        "relay connection closed, ending stream",
                        extra={"data": {"session_id": self.session_id, "code": closed.code}},
                    )
                    return
                yield frame
        finally:
            with anyio.CancelScope(shield=True):
                await self.connection.close(CLOSE_NORMAL, "stream closed")


class StreamBridge:
    """Mints a session per stream and waits for its connection to be acknowledged."""

    def __init__(
        self,
        connector: ConnectorPort,
        *,
        connect_timeout: float = 5.0,
        id_factory: Callable[[], str] = mint_session_id,
    ) -> None:
        if connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        self._connector = connector
        self._connect_timeout = connect_timeout
        self._id_factory = id_factory

    async def open_stream(self) -> OpenedStream:
        session_id = self._id_factory()
        connection = await self._connector.connect(session_id)

        try:
            first = await asyncio.wait_for(connection.receive_text(), timeout=self._connect_timeout)
        except (ConnectionClosedError, TimeoutError) as exc:
            await connection.close(CLOSE_NORMAL, "establishment failed")
            raise StreamEstablishmentError(
                f"connection for session {session_id} was not acknowledged"
            ) from exc

        if acknowledged_session(first) != session_id:
            await connection.close(CLOSE_PROTOCOL_ERROR, "unexpected acknowledgement")
            raise StreamEstablishmentError(
                f"connection for session {session_id} sent an unexpected first frame"
            )

        logger.info("stream opened", extra={"data": {"session_id": session_id}})
        return OpenedStream(session_id=session_id, connection=connection, acknowledgement=first)


__all__ = ["OpenedStream", "StreamBridge"]
