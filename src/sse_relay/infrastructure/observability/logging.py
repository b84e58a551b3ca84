"""Logging configuration: console formatter with structured extras, optional Cloud Logging."""

from __future__ import annotations

import json
import logging
import os
import time
import traceback
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from logging.config import dictConfig
from typing import Any

from opentelemetry import baggage, trace

_PACKAGE_LOGGER = "sse_relay"
_CLOUD_HANDLER = "cloud_logging"


def _level(env_var: str, default: str) -> str:
    return os.getenv(env_var, default).upper()


def _managed_runtime() -> bool:
    # Cloud Run and Kubernetes ingest JSON lines as structured payloads.
    return bool(os.getenv("K_SERVICE") or os.getenv("KUBERNETES_SERVICE_HOST"))


def _sanitize(value: Any, depth: int = 8) -> Any:
    """Return a JSON-serializable copy, stringifying anything unknown."""

    if depth <= 0:
        return "<depth_exceeded>"
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes len={len(value)}>"
    if is_dataclass(value) and not isinstance(value, type):
        return _sanitize(asdict(value), depth - 1)
    if isinstance(value, Mapping):
        return {str(k): _sanitize(v, depth - 1) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_sanitize(item, depth - 1) for item in value]
    return str(value)


class ExtrasFormatter(logging.Formatter):
    """Append ``extra={"data": ...}`` payloads to console lines."""

    def format(self, record: logging.LogRecord) -> str:
        data = record.__dict__.get("data")
        if _managed_runtime():
            return json.dumps(self._payload(record, data), sort_keys=True, separators=(",", ":"))
        formatted = super().format(record)
        if data:
            return f"{formatted} | data={json.dumps(_sanitize(data), sort_keys=True, separators=(',', ':'))}"
        return formatted

    def _payload(self, record: logging.LogRecord, data: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "message": record.getMessage(),
            "severity": record.levelname,
            "logger": record.name,
            "timestamp": (
                f"{time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created))}"
                f".{int(record.msecs):03d}Z"
            ),
        }
        if data:
            payload["data"] = _sanitize(data)
        otel = record.__dict__.get("otel")
        if otel:
            payload["otel"] = otel
        if record.exc_info:
            payload["exception"] = "".join(traceback.format_exception(*record.exc_info)).rstrip("\n")
        return payload


class OtelContextLogFilter(logging.Filter):
    """Attach the active trace/span ids and baggage as ``record.otel``."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - thin wrapper
        otel: dict[str, Any] = {}
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            otel["trace_id"] = f"{span_context.trace_id:032x}"
            otel["span_id"] = f"{span_context.span_id:016x}"
        values = baggage.get_all()
        if values:
            otel["baggage"] = {key: str(value) for key, value in values.items()}
        if otel:
            record.__dict__["otel"] = otel
            record.__dict__["json_fields"] = {"otel": otel, "data": _sanitize(record.__dict__.get("data"))}
        return True


def build_log_config(
    *,
    root_level_env: str = "LOG_LEVEL",
    root_default: str = "INFO",
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
    cloud_log_name: str = "sse-relay",
    cloud_log_labels: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a dictConfig-compatible logging configuration."""

    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": "ext://sys.stdout",
            "filters": ["otel_context"],
        }
    }
    handler_names = ["console"]
    if cloud_logging_enabled:
        if not gcp_project:
            raise RuntimeError("GCP project required when cloud logging is enabled")
        handlers[_CLOUD_HANDLER] = _cloud_logging_handler(gcp_project, cloud_log_name, cloud_log_labels)
        handler_names.append(_CLOUD_HANDLER)

    def _logger(level: str) -> dict[str, Any]:
        return {"level": level, "handlers": list(handler_names), "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": ExtrasFormatter,
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "filters": {"otel_context": {"()": OtelContextLogFilter}},
        "handlers": handlers,
        "root": {"level": _level(root_level_env, root_default), "handlers": list(handler_names)},
        "loggers": {
            "uvicorn": _logger(_level("UVICORN_LOG_LEVEL", "INFO")),
            "uvicorn.error": _logger(_level("UVICORN_LOG_LEVEL", "INFO")),
            "uvicorn.access": _logger(_level("UVICORN_ACCESS_LOG_LEVEL", "WARNING")),
            "sse_starlette": _logger(_level("SSE_LOG_LEVEL", "WARNING")),
        },
    }


def _cloud_logging_handler(
    project: str,
    log_name: str,
    labels: Mapping[str, str] | None,
) -> dict[str, Any]:
    from google.cloud import logging as gcp_logging
    from google.cloud.logging_v2.resource import Resource

    client = gcp_logging.Client(project=project)  # type: ignore[no-untyped-call]
    return {
        "level": "INFO",
        "class": "google.cloud.logging_v2.handlers.handlers.CloudLoggingHandler",
        "client": client,
        "name": log_name,
        "resource": Resource("global", {"project_id": project}),
        "labels": dict(labels or {}),
        "formatter": "console",
        "filters": ["otel_context"],
    }


def configure_logging(
    *,
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
    cloud_log_labels: Mapping[str, str] | None = None,
) -> None:
    """Apply the logging config and reset package loggers to inherit the root level."""

    config = build_log_config(
        cloud_logging_enabled=cloud_logging_enabled,
        gcp_project=gcp_project,
        cloud_log_labels=cloud_log_labels,
    )
    dictConfig(config)
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.setLevel(logging.getLogger().level)
    package_logger.propagate = True
    logging.getLogger("sse_relay.observability").debug(
        "configured logging",
        extra={"data": {"cloud_logging_enabled": cloud_logging_enabled, "gcp_project": gcp_project}},
    )


def init_logging() -> None:
    """Bootstrap console logging without cloud handlers."""

    configure_logging(cloud_logging_enabled=False)


def shutdown_logging() -> None:
    """Flush and close Cloud Logging handlers before exit."""

    from google.cloud.logging_v2.handlers.handlers import CloudLoggingHandler

    for handler in logging.getLogger().handlers:
        if isinstance(handler, CloudLoggingHandler):
            handler.flush()
            handler.close()  # type: ignore[no-untyped-call]


__all__ = [
    "ExtrasFormatter",
    "OtelContextLogFilter",
    "build_log_config",
    "configure_logging",
    "init_logging",
    "shutdown_logging",
]
