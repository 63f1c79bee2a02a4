"""Single-consumer loop that turns queued workflow runs into traces and logs."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from gha_exporter.core import metrics
from gha_exporter.core.exceptions import ExporterError
from gha_exporter.models import WorkflowRunEvent
from gha_exporter.services.github.exceptions import GithubError
from gha_exporter.services.logs.log_shipper import LogShipper
from gha_exporter.services.tracing.workflow_tracer import JobSource, WorkflowTraceBuilder

from .handoff import HandoffQueue

logger = logging.getLogger(__name__)


class IngestionWorker:
    """
    Drains the hand-off queue one event at a time: build the run's trace, then
    ship each job's logs. The shutdown signal is only checked between events,
    so an event that has been taken always runs to completion.
    """

    def __init__(
        self,
        event_queue: HandoffQueue[WorkflowRunEvent],
        source: JobSource,
        trace_builder: WorkflowTraceBuilder,
        log_shipper: LogShipper,
        poll_interval: float = 0.5,
    ) -> None:
        self._queue = event_queue
        self._source = source
        self._trace_builder = trace_builder
        self._log_shipper = log_shipper
        self._poll_interval = poll_interval
        self._shutdown = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("IngestionWorker already started")
        self._thread = threading.Thread(target=self.run, name="ingestion-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal shutdown and wait for the event in progress to finish."""
        self._shutdown.set()
        self._queue.close()
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        logger.info("Starting ingestion worker")
        while not self._shutdown.is_set():
            event = self._queue.get(timeout=self._poll_interval)
            if event is None:
                continue
            logger.info("Received workflow run event")
            try:
                self.process_event(event)
            except Exception:
                # One bad event must never take the worker down
                metrics.RUNS_PROCESSED.labels(status="failed").inc()
                logger.exception("Unexpected error processing workflow run event")
        logger.info("Ingestion worker stopped")

    def process_event(self, event: WorkflowRunEvent) -> bool:
        """Trace one run and ship its job logs. Returns True on success."""
        run = event.workflow_run
        if run is None:
            logger.warning("Dropping event without a workflow run")
            metrics.RUNS_PROCESSED.labels(status="failed").inc()
            return False

        context = {"repository": event.repository.full_name, "run_id": run.id}
        try:
            owner, repo = event.owner_and_repo()
            jobs = self._source.list_workflow_jobs(owner, repo, run.id)
            trace_ids = self._trace_builder.build_trace(owner, repo, run, jobs)
        except (GithubError, ExporterError) as exc:
            metrics.RUNS_PROCESSED.labels(status="failed").inc()
            logger.error(
                "Failed to trace workflow run",
                extra={**context, "error": str(exc)},
            )
            return False

        failed_jobs = 0
        for job in jobs:
            if not self._log_shipper.enabled:
                metrics.JOB_LOG_SHIPMENTS.labels(status="skipped").inc()
                continue
            try:
                lines = self._log_shipper.ship_logs(owner, repo, run, job, trace_ids[job.id])
            except (GithubError, ExporterError) as exc:
                failed_jobs += 1
                metrics.JOB_LOG_SHIPMENTS.labels(status="failed").inc()
                logger.error(
                    "Failed to ship workflow job logs",
                    extra={**context, "job_id": job.id, "error": str(exc)},
                )
                continue
            metrics.JOB_LOG_SHIPMENTS.labels(status="success").inc()
            logger.debug(
                "Shipped workflow job logs",
                extra={**context, "job_id": job.id, "lines": lines},
            )

        metrics.RUNS_PROCESSED.labels(status="success").inc()
        logger.info(
            "Successfully traced workflow run",
            extra={**context, "jobs": len(jobs), "failed_log_shipments": failed_jobs},
        )
        return True
