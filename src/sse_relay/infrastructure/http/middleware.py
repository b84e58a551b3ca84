from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

from fastapi import Request

logger = logging.getLogger("sse_relay.http")

_SESSION_HEADER = "x-session-id"


async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
) -> Any:
    request_id = request.headers.get("x-request-id", uuid4().hex)
    base = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "session_id": request.headers.get(_SESSION_HEADER),
    }
    logger.info("request_received", extra={"data": base})

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", extra={"data": base})
        raise

    # Streaming responses report here once headers are sent, not when the stream ends.
    logger.info(
        "request_completed",
        extra={
            "data": base
            | {
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            }
        },
    )
    return response


__all__ = ["request_logging_middleware"]
