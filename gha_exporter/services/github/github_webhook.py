from __future__ import annotations

import logging
import queue
from typing import Callable

from fastapi import HTTPException, status
from pydantic import ValidationError

from gha_exporter.core import metrics
from gha_exporter.core.exceptions import QueueClosedError
from gha_exporter.models import WorkflowRunEvent

logger = logging.getLogger(__name__)

PING_EVENT = "ping"
COMPLETED = "completed"


def parse_workflow_run_event(body: bytes) -> WorkflowRunEvent:
    try:
        event = WorkflowRunEvent.model_validate_json(body)
    except ValidationError as exc:
        logger.debug("Failed to parse workflow run event", extra={"error": str(exc)})
        metrics.WEBHOOK_EVENTS.labels(outcome="rejected").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="bad payload")

    if event.workflow_run is None:
        logger.debug("Payload does not contain a workflow run")
        metrics.WEBHOOK_EVENTS.labels(outcome="rejected").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="bad payload")
    return event


def handle_github_event(
    enqueue: Callable[[WorkflowRunEvent], None],
    event_name: str | None,
    body: bytes,
) -> str:
    """
    Accept one webhook delivery.

    Completed workflow runs are handed to ``enqueue``, which blocks until the
    worker takes them. Everything else is acknowledged without tracing.
    """
    if event_name == PING_EVENT:
        metrics.WEBHOOK_EVENTS.labels(outcome="ignored").inc()
        return "ok"

    event = parse_workflow_run_event(body)
    run = event.workflow_run
    if run.status != COMPLETED:
        logger.debug(
            "Workflow run not completed",
            extra={"run_id": run.id, "status": run.status},
        )
        metrics.WEBHOOK_EVENTS.labels(outcome="ignored").inc()
        return "ok"

    try:
        enqueue(event)
    except (QueueClosedError, queue.Full) as exc:
        logger.warning(
            "Workflow run not accepted by the worker",
            extra={"run_id": run.id, "reason": type(exc).__name__},
        )
        metrics.WEBHOOK_EVENTS.labels(outcome="unavailable").inc()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="exporter unavailable"
        )

    logger.info(
        "Queued workflow run",
        extra={"repository": event.repository.full_name, "run_id": run.id},
    )
    metrics.WEBHOOK_EVENTS.labels(outcome="queued").inc()
    return "ok"
