"""OpenTelemetry bootstrap and baggage helper."""

from __future__ import annotations

import os
from contextvars import Token

from opentelemetry import baggage, context, trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

_TRACING_CONFIGURED = False


def configure_tracing(*, service_name: str) -> None:
    """Install an OTLP exporter when an endpoint is configured; otherwise no-op.

    Setting ``OTEL_TRACES_EXPORTER`` to anything but ``none`` without an
    endpoint is a configuration error.
    """

    global _TRACING_CONFIGURED
    if _TRACING_CONFIGURED:
        return

    traces_exporter = (os.getenv("OTEL_TRACES_EXPORTER") or "").strip().lower()
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if traces_exporter == "none" or (not endpoint and not traces_exporter):
        _TRACING_CONFIGURED = True
        return
    if not endpoint:
        raise RuntimeError(
            "Tracing enabled but OTLP endpoint missing: set OTEL_EXPORTER_OTLP_ENDPOINT "
            "or OTEL_TRACES_EXPORTER=none."
        )

    resolved_name = (os.getenv("OTEL_SERVICE_NAME") or service_name).strip()
    if not resolved_name:
        raise RuntimeError("service_name must be a non-empty string")

    provider = TracerProvider(resource=Resource.create({"service.name": resolved_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    _TRACING_CONFIGURED = True


def attach_baggage(values: dict[str, str]) -> Token[context.Context]:
    """Attach baggage values to the current context; returns a detach token."""

    ctx = context.get_current()
    for key, value in values.items():
        ctx = baggage.set_baggage(key, value, context=ctx)
    return context.attach(ctx)


__all__ = ["attach_baggage", "configure_tracing"]
