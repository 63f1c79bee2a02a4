"""Wires the exporter's components together and owns their lifecycle."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from opentelemetry.sdk.trace import TracerProvider

from gha_exporter.core.config import Settings
from gha_exporter.core.telemetry import TRACER_NAME, setup_tracer_provider
from gha_exporter.models import WorkflowRunEvent
from gha_exporter.services.github import (
    GitHubClient,
    InstallationTokenSource,
    StaticTokenSource,
    TokenSource,
)
from gha_exporter.services.logs import (
    Configured,
    Disabled,
    LogShipper,
    LogSinkOption,
    LokiClient,
)
from gha_exporter.services.tracing import OTelTraceSink, WorkflowTraceBuilder
from gha_exporter.workers.handoff import HandoffQueue
from gha_exporter.workers.ingestion import IngestionWorker

logger = logging.getLogger(__name__)


def build_token_source(settings: Settings) -> TokenSource:
    github = settings.github
    if github.uses_app_auth:
        logger.info("Using GitHub App installation credentials")
        return InstallationTokenSource(
            app_id=github.app_id,
            private_key=github.private_key,
            installation_id=github.installation_id,
            api_url=github.api_url,
        )
    return StaticTokenSource(github.token or "")


def build_log_sink(settings: Settings) -> LogSinkOption:
    if not settings.loki.enabled:
        logger.info("No Loki endpoint configured, job logs will not be shipped")
        return Disabled()
    logger.info("Enabling Loki client for job logs", extra={"endpoint": settings.loki.endpoint})
    return Configured(LokiClient.from_settings(settings.loki))


class Exporter:
    """
    Holds the GitHub client, trace and log sinks and the ingestion worker.

    Any collaborator can be injected; the rest are built from ``settings``.
    """

    def __init__(
        self,
        settings: Settings,
        github_client: Optional[GitHubClient] = None,
        tracer_provider: Optional[TracerProvider] = None,
        log_sink: Optional[LogSinkOption] = None,
    ) -> None:
        self.settings = settings
        self.github_client = github_client or GitHubClient(
            build_token_source(settings),
            api_url=settings.github.api_url,
            timeout=settings.github.timeout_seconds,
        )
        self.tracer_provider = tracer_provider or setup_tracer_provider(
            settings.otel, environment=settings.environment
        )
        self.log_sink = log_sink if log_sink is not None else build_log_sink(settings)

        trace_sink = OTelTraceSink(self.tracer_provider.get_tracer(TRACER_NAME))
        self.queue: HandoffQueue[WorkflowRunEvent] = HandoffQueue()
        self.worker = IngestionWorker(
            self.queue,
            source=self.github_client,
            trace_builder=WorkflowTraceBuilder(trace_sink, self.github_client),
            log_shipper=LogShipper(self.github_client, self.log_sink),
            poll_interval=settings.worker.poll_interval_seconds,
        )
        self._stop_lock = threading.Lock()
        self._stopped = False

    @property
    def is_ready(self) -> bool:
        return self.worker.is_alive and not self.queue.closed

    def start(self) -> None:
        logger.info("Starting exporter")
        self.worker.start()

    def enqueue(self, event: WorkflowRunEvent) -> None:
        """
        Hand ``event`` to the worker, blocking until it is taken.

        Raises ``QueueClosedError`` during shutdown and ``queue.Full`` when
        the configured enqueue timeout elapses.
        """
        self.queue.put(event, timeout=self.settings.worker.enqueue_timeout_seconds)

    def stop(self) -> None:
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

        logger.info("Shutting down exporter")
        # Lets the run in progress finish before its sinks go away
        self.worker.stop()
        if isinstance(self.log_sink, Configured):
            self.log_sink.sink.close()
        self.tracer_provider.shutdown()
        self.github_client.close()
        logger.info("Exporter stopped")
