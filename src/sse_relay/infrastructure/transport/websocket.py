"""Adapter exposing a Starlette WebSocket as a relay connection."""

from __future__ import annotations

import asyncio
import logging

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from sse_relay.application.ports.connection import ConnectionPort
from sse_relay.domain.exceptions import ConnectionClosedError, TransportError

logger = logging.getLogger("sse_relay.transport")

_CLEAN_CLOSE_CODES = frozenset({1000, 1001})
_NO_STATUS_CODE = 1005


class StarletteWebSocketConnection(ConnectionPort):
    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._send_lock = asyncio.Lock()
        self._closed = False

    async def send_text(self, data: str) -> None:
        async with self._send_lock:
            if self._closed or self._websocket.application_state is not WebSocketState.CONNECTED:
                raise TransportError("websocket is not connected")
            try:
                await self._websocket.send_text(data)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                raise TransportError(f"websocket send failed: {exc!r}") from exc

    async def receive_text(self) -> str:
        try:
            message = await self._websocket.receive()
        except RuntimeError as exc:
            raise ConnectionClosedError(_NO_STATUS_CODE, str(exc), was_clean=False) from exc

        if message["type"] == "websocket.disconnect":
            code = int(message.get("code") or _NO_STATUS_CODE)
            raise ConnectionClosedError(
                code,
                message.get("reason") or "",
                was_clean=code in _CLEAN_CLOSE_CODES,
            )

        text = message.get("text")
        if text is not None:
            return str(text)
        data = message.get("bytes") or b""
        return data.decode("utf-8", errors="replace")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._closed:
            return
        self._closed = True
        if (
            self._websocket.application_state is WebSocketState.DISCONNECTED
            or self._websocket.client_state is WebSocketState.DISCONNECTED
        ):
            return
        try:
            await self._websocket.close(code=code, reason=reason)
        except RuntimeError as exc:
            logger.debug("websocket already closed", extra={"data": {"error": str(exc)}})


__all__ = ["StarletteWebSocketConnection"]
