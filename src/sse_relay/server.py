"""Entrypoint for running the relay API service under uvicorn."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sse_relay.infrastructure.http.middleware import request_logging_middleware
from sse_relay.infrastructure.http.routes import (
    add_connection_routes,
    add_relay_routes,
    add_status_routes,
)
from sse_relay.infrastructure.observability.logging import (
    configure_logging,
    init_logging,
    shutdown_logging,
)
from sse_relay.infrastructure.observability.tracing import configure_tracing
from sse_relay.runtime.bootstrap import RuntimeContext, build_runtime, close_runtime_resources
from sse_relay.runtime.settings import Settings


def create_app(runtime: RuntimeContext) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        yield
        await close_runtime_resources(runtime)

    app = FastAPI(title="SSE Relay API", version="0.1.0", lifespan=lifespan)
    app.middleware("http")(request_logging_middleware)

    add_relay_routes(app, runtime.relay_deps_provider)
    add_connection_routes(app, runtime.connection_deps_provider)
    add_status_routes(app, runtime.status_deps_provider)
    return app


def _bootstrap() -> tuple[RuntimeContext, FastAPI]:
    init_logging()
    configure_tracing(service_name="sse-relay")
    settings = Settings.load()
    if settings.observability.enable_cloud_logging:
        gcp_project = settings.observability.gcp_project_id
        if gcp_project is None:
            raise RuntimeError("Cloud logging enabled but no GCP project configured")
        configure_logging(
            cloud_logging_enabled=True,
            gcp_project=gcp_project,
            cloud_log_labels={"service": "sse-relay"},
        )
    runtime = build_runtime(settings)
    return runtime, create_app(runtime)


def main() -> None:
    import uvicorn

    runtime, app = _bootstrap()
    try:
        uvicorn.run(
            app,
            host=runtime.settings.listen_host,
            port=runtime.settings.port,
            # logging already setup
            log_config=None,
        )
    finally:
        if runtime.settings.observability.enable_cloud_logging:
            shutdown_logging()


__all__ = ["create_app", "main"]
