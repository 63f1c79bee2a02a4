"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from gha_exporter.api import health, webhook
from gha_exporter.app import Exporter
from gha_exporter.core.config import get_settings
from gha_exporter.core.logging import setup_logging
from gha_exporter.middleware.request_logging import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def create_app(exporter: Optional[Exporter] = None) -> FastAPI:
    """
    Build the HTTP surface around ``exporter``.

    The exporter is created from settings at startup when none is given. Its
    worker runs for the lifetime of the application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.exporter = exporter or Exporter(get_settings())
        app.state.exporter.start()
        try:
            yield
        finally:
            app.state.exporter.stop()

    app = FastAPI(
        title="GitHub Actions OpenTelemetry Exporter",
        description="Turns workflow_run webhooks into traces and job logs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        RequestLoggingMiddleware,
        ignore_paths=(health.LIVENESS_PATH, health.READINESS_PATH),
    )

    @app.exception_handler(StarletteHTTPException)
    async def plain_text_errors(request: Request, exc: StarletteHTTPException):
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    app.include_router(webhook.router)
    app.include_router(health.router)
    app.mount("/metrics", make_asgi_app())
    return app


def entrypoint() -> None:
    settings = get_settings()
    setup_logging(settings.logging.level, service_name=settings.otel.service_name)
    logger.info(
        "Starting exporter server",
        extra={"host": settings.server.host, "port": settings.server.port},
    )
    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    entrypoint()
