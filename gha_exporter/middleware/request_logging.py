"""Request logging middleware.

- Adds an X-Request-ID header to responses (reusing any incoming one)
- Logs method, path, status, duration and client IP
- Skips the health probes, which would otherwise drown out webhook traffic
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Collection

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp


logger = logging.getLogger("gha_exporter.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, ignore_paths: Collection[str] = ()) -> None:
        super().__init__(app)
        self._ignore_paths = frozenset(ignore_paths)

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        if request.url.path in self._ignore_paths:
            return await call_next(request)

        start = time.monotonic()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        context = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "request_id": request_id,
            "github_delivery": request.headers.get("X-GitHub-Delivery"),
        }

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled exception during request",
                extra={**context, "duration_ms": int((time.monotonic() - start) * 1000)},
            )
            raise

        logger.info(
            "Request finished",
            extra={
                **context,
                "status": response.status_code,
                "duration_ms": int((time.monotonic() - start) * 1000),
            },
        )
        response.headers.setdefault("X-Request-ID", request_id)
        return response
