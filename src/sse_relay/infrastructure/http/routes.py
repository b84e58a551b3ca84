"""HTTP and WebSocket route definitions for the relay API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security, WebSocket
from fastapi.security import APIKeyHeader
from opentelemetry import context
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from sse_relay.application.lifecycle import ConnectionLifecycleHandler
from sse_relay.application.relay import ConnectionRelay
from sse_relay.application.status import StatusProvider
from sse_relay.application.stream_bridge import OpenedStream, StreamBridge
from sse_relay.domain.exceptions import StreamEstablishmentError
from sse_relay.domain.relay import RelayOutcome
from sse_relay.infrastructure.http.schemas import (
    MessageRequest,
    MessageResponse,
    RelayStatusResponse,
    SessionStateResponse,
)
from sse_relay.infrastructure.observability.tracing import attach_baggage
from sse_relay.infrastructure.transport.websocket import StarletteWebSocketConnection

logger = logging.getLogger("sse_relay.http")

SESSION_ID_HEADER = "X-Session-ID"
STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
CLOSE_POLICY_VIOLATION = 1008


@dataclass(frozen=True)
class RelayRouteDeps:
    relay: ConnectionRelay
    bridge: StreamBridge
    sse_ping_seconds: float = 15.0


@dataclass(frozen=True)
class ConnectionRouteDeps:
    lifecycle: ConnectionLifecycleHandler


@dataclass(frozen=True)
class StatusRouteDeps:
    status_provider: StatusProvider


session_id_scheme = APIKeyHeader(name=SESSION_ID_HEADER, scheme_name="RelaySession", auto_error=False)


async def require_session_id(session_id: str | None = Security(session_id_scheme)) -> str:
    if not session_id or not session_id.strip():
        raise HTTPException(status_code=400, detail="missing session id")
    return session_id.strip()


def add_relay_routes(app: FastAPI, dependency_provider: Callable[[], RelayRouteDeps]) -> None:
    def get_dependencies() -> RelayRouteDeps:
        return dependency_provider()

    @app.get(
        "/sse",
        response_class=EventSourceResponse,
        description="Open a server-sent event stream bound to a freshly minted session.",
    )
    async def open_stream(
        deps: RelayRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> EventSourceResponse:
        try:
            stream = await deps.bridge.open_stream()
        except StreamEstablishmentError as exc:
            logger.error("stream establishment failed", extra={"data": {"error": str(exc)}})
            raise HTTPException(status_code=500, detail="failed to establish relay connection") from exc
        return EventSourceResponse(
            _stream_events(stream),
            ping=deps.sse_ping_seconds,
            headers=dict(STREAM_HEADERS),
        )

    @app.post(
        "/message",
        response_model=MessageResponse,
        description="Relay a message to the stream owning the X-Session-ID session.",
    )
    async def post_message(
        request: Request,
        deps: RelayRouteDeps = Depends(get_dependencies),  # noqa: B008
        session_id: str = Security(require_session_id),
    ) -> MessageResponse:
        body = await request.body()
        try:
            payload = MessageRequest.model_validate_json(body)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail="missing message content") from exc

        token = attach_baggage({"relay.session_id": session_id})
        try:
            result = await deps.relay.relay(session_id, payload.message)
        finally:
            context.detach(token)

        if not result.delivered:
            raise HTTPException(status_code=result.status_code, detail=_public_error_message(result.outcome))
        return MessageResponse(status="message relayed", session_id=session_id)


def add_connection_routes(app: FastAPI, dependency_provider: Callable[[], ConnectionRouteDeps]) -> None:
    def get_dependencies() -> ConnectionRouteDeps:
        return dependency_provider()

    @app.websocket("/v1/connect")
    async def connect(
        websocket: WebSocket,
        session_id: str | None = Query(default=None, alias="sessionId"),
        deps: ConnectionRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> None:
        if not session_id or not session_id.strip():
            await websocket.close(code=CLOSE_POLICY_VIOLATION, reason="missing sessionId")
            return
        await websocket.accept()
        await deps.lifecycle.serve(session_id.strip(), StarletteWebSocketConnection(websocket))


def add_status_routes(app: FastAPI, dependency_provider: Callable[[], StatusRouteDeps]) -> None:
    def get_dependencies() -> StatusRouteDeps:
        return dependency_provider()

    @app.get(
        "/v1/status",
        response_model=RelayStatusResponse,
        description="Return a registry snapshot for health checks.",
    )
    def status(
        deps: StatusRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> RelayStatusResponse:
        return RelayStatusResponse(**deps.status_provider.snapshot())  # type: ignore[arg-type]

    @app.get(
        "/v1/sessions/{session_id}",
        response_model=SessionStateResponse,
        description="Return the observable state of a session identifier.",
    )
    def session_state(
        session_id: str,
        deps: StatusRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> SessionStateResponse:
        state = deps.status_provider.session_state(session_id)
        return SessionStateResponse(session_id=session_id, state=state.value)


# --- Helpers ---


async def _stream_events(stream: OpenedStream) -> AsyncIterator[dict[str, str]]:
    async with aclosing(stream.events()) as frames:
        async for frame in frames:
            yield {"data": frame}


def _public_error_message(outcome: RelayOutcome) -> str:
    if outcome is RelayOutcome.SESSION_UNKNOWN:
        return "session not found"
    if outcome is RelayOutcome.CONNECTION_LOST:
        return "connection lost, please reconnect"
    return "failed to relay message"


__all__ = [
    "ConnectionRouteDeps",
    "RelayRouteDeps",
    "StatusRouteDeps",
    "add_connection_routes",
    "add_relay_routes",
    "add_status_routes",
]
