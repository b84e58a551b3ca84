"""Connection lifecycle: open, inbound payloads, close and error events."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sse_relay.application.ports.connection import ConnectionPort
from sse_relay.application.ports.session_registry import SessionRegistryPort
from sse_relay.domain.exceptions import (
    ConnectionClosedError,
    DurableStoreError,
    MalformedPayloadError,
    TransportError,
)
from sse_relay.domain.frames import (
    connected_frame,
    echo_content,
    error_frame,
    message_frame,
    parse_inbound,
)

logger = logging.getLogger("sse_relay.lifecycle")

CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011


class ConnectionLifecycleHandler:
    """Owns every registry mutation caused by a connection's lifecycle.

    Per session the only legal path is ``unknown -> open -> closed``; close and
    error events are the same terminal transition. Durable-store writes run in
    a worker thread and are bounded by ``durable_write_timeout``.
    """

    def __init__(
        self,
        registry: SessionRegistryPort,
        *,
        durable_write_timeout: float = 2.0,
    ) -> None:
        if durable_write_timeout <= 0:
            raise ValueError("durable_write_timeout must be positive")
        self._registry = registry
        self._durable_write_timeout = durable_write_timeout
        self._retractions: set[asyncio.Task[None]] = set()

    async def serve(self, session_id: str, connection: ConnectionPort) -> None:
        """Drive ``connection`` through its lifecycle until it closes or errors."""

        if not await self.on_open(session_id, connection):
            return
        while True:
            try:
                raw = await connection.receive_text()
            except ConnectionClosedError as closed:
                await self.on_close(connection, closed.code, closed.reason, closed.was_clean)
                return
            except asyncio.CancelledError:
                # Shutdown keeps the durable record so the session reads as detached after restart.
                abandoned = self._registry.release(connection)
                logger.info(
                    "connection abandoned on shutdown",
                    extra={"data": {"session_id": abandoned}},
                )
                raise
            except Exception as exc:
                await self.on_error(connection, exc)
                return
            await self.on_message(connection, raw)

    async def on_open(self, session_id: str, connection: ConnectionPort) -> bool:
        """Record the session and acknowledge it; return False when refused."""

        if not session_id:
            await connection.close(CLOSE_POLICY_VIOLATION, "missing session id")
            return False
        if self._registry.is_retired(session_id):
            logger.warning(
                "refusing reuse of closed session id",
                extra={"data": {"session_id": session_id}},
            )
            await connection.close(CLOSE_POLICY_VIOLATION, "session id already closed")
            return False

        try:
            await self._persist(session_id)
        except (DurableStoreError, TimeoutError) as exc:
            logger.error(
                "failed to persist session",
                extra={"data": {"session_id": session_id, "error": repr(exc)}},
            )
            await connection.close(CLOSE_INTERNAL_ERROR, "session persistence failed")
            return False

        displaced = self._registry.register(session_id, connection)
        if displaced is not None:
            await displaced.close(1000, "superseded")

        try:
            await connection.send_text(connected_frame(session_id))
        except TransportError as exc:
            logger.warning(
                "failed to acknowledge session",
                extra={"data": {"session_id": session_id, "error": str(exc)}},
            )
        logger.info("connection opened", extra={"data": {"session_id": session_id}})
        return True

    async def on_message(self, connection: ConnectionPort, raw: str) -> None:
        """Answer an inbound payload with an echo frame or an error frame."""

        try:
            data = parse_inbound(raw)
        except MalformedPayloadError as exc:
            logger.debug(
                "malformed inbound payload",
                extra={"data": {"session_id": self._registry.owner_of(connection), "error": str(exc)}},
            )
            reply = error_frame()
        else:
            reply = message_frame(echo_content(data, raw))

        try:
            await connection.send_text(reply)
        except TransportError as exc:
            logger.warning(
                "failed to answer inbound payload",
                extra={"data": {"session_id": self._registry.owner_of(connection), "error": str(exc)}},
            )

    async def on_close(
        self,
        connection: ConnectionPort,
        code: int,
        reason: str,
        was_clean: bool,
    ) -> None:
        session_id = self._registry.release(connection)
        if session_id is None:
            logger.debug(
                "close for untracked connection",
                extra={"data": {"code": code, "reason": reason}},
            )
            return
        logger.info(
            "connection closed",
            extra={
                "data": {
                    "session_id": session_id,
                    "code": code,
                    "reason": reason,
                    "was_clean": was_clean,
                }
            },
        )
        await self._clear_durable(session_id)

    async def on_error(self, connection: ConnectionPort, error: BaseException) -> None:
        session_id = self._registry.release(connection)
        logger.warning(
            "connection errored",
            exc_info=error,
            extra={"data": {"session_id": session_id}},
        )
        if session_id is None:
            return
        await self._clear_durable(session_id)

    # --- Helpers ---

    async def _clear_durable(self, session_id: str) -> None:
        try:
            await self._bounded(self._registry.clear_durable, session_id)
        except (DurableStoreError, TimeoutError) as exc:
            # The handle is already gone; a stale record surfaces later as a lost connection.
            logger.warning(
                "failed to clear durable session record",
                extra={"data": {"session_id": session_id, "error": repr(exc)}},
            )

    async def _persist(self, session_id: str) -> None:
        write = asyncio.ensure_future(asyncio.to_thread(self._registry.mark_durable, session_id))
        try:
            await asyncio.wait_for(asyncio.shield(write), timeout=self._durable_write_timeout)
        except TimeoutError:
            # The worker thread cannot be stopped; undo its write once it lands.
            task = asyncio.create_task(
                self._retract_late_write(write, session_id),
                name=f"retract-durable-{session_id}",
            )
            self._retractions.add(task)
            task.add_done_callback(self._retractions.discard)
            raise

    async def _retract_late_write(self, write: asyncio.Future[None], session_id: str) -> None:
        try:
            await write
        except DurableStoreError:
            return
        if self._registry.lookup(session_id) is not None:
            return
        logger.info(
            "retracting late durable write",
            extra={"data": {"session_id": session_id}},
        )
        await self._clear_durable(session_id)

    async def _bounded(self, operation: Callable[[str], None], session_id: str) -> None:
        await asyncio.wait_for(
            asyncio.to_thread(operation, session_id),
            timeout=self._durable_write_timeout,
        )


__all__ = ["ConnectionLifecycleHandler"]
