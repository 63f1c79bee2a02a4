"""
Translate a completed workflow run into a span tree.

The tree mirrors how GitHub Actions executes a run::

    <run name>                 created_at -> updated_at
    ├── queue                  created_at -> first job start
    ├── <job name>             job started_at -> completed_at
    │   ├── <step name>        step started_at -> completed_at
    │   └── ...
    └── ...
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from gha_exporter.core.exceptions import MissingFieldError
from gha_exporter.models import WorkflowJob, WorkflowRun, WorkflowStep

from .trace_sink import SpanStatus, TraceSink

logger = logging.getLogger(__name__)

FAILURE = "failure"
QUEUE_SPAN_NAME = "queue"


class JobSource(Protocol):
    def list_workflow_jobs(self, owner: str, repo: str, run_id: int) -> List[WorkflowJob]:
        ...


def _require(value: Optional[datetime], field: str) -> datetime:
    if value is None:
        raise MissingFieldError(field)
    return value


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _compact(attributes: Dict[str, Any]) -> Dict[str, Any]:
    """Drop attributes GitHub left empty; OTel rejects None values."""
    return {key: value for key, value in attributes.items() if value is not None}


def _status_for(conclusion: Optional[str]) -> SpanStatus:
    # Only an outright failure is an error; cancelled or timed_out are not.
    return SpanStatus.ERROR if conclusion == FAILURE else SpanStatus.OK


class WorkflowTraceBuilder:
    def __init__(self, trace_sink: TraceSink, source: JobSource):
        self._sink = trace_sink
        self._source = source

    def build_trace(
        self,
        owner: str,
        repo: str,
        run: WorkflowRun,
        jobs: Optional[Sequence[WorkflowJob]] = None,
    ) -> Dict[int, str]:
        """
        Emit the span tree of ``run`` and return the trace id of every job span,
        keyed by job id.

        Jobs are fetched from GitHub when not supplied. Fetch failures and
        missing timestamps are raised before any span is opened.
        """
        if jobs is None:
            jobs = self._source.list_workflow_jobs(owner, repo, run.id)
        self._check_timestamps(run, jobs)

        run_ctx, run_span = self._sink.start_span(
            None, run.name, run.created_at, self._run_attributes(owner, repo, run)
        )

        _, queue_span = self._sink.start_span(run_ctx, QUEUE_SPAN_NAME, run.created_at, {})
        if jobs:
            queue_end = min(job.started_at for job in jobs)
        else:
            # Nothing ever left the queue
            queue_end = run.updated_at
        self._sink.end_span(queue_span, queue_end, SpanStatus.OK)

        trace_ids: Dict[int, str] = {}
        for job in jobs:
            trace_ids[job.id] = self._trace_job(run_ctx, job)

        self._sink.end_span(
            run_span,
            run.updated_at,
            _status_for(run.conclusion),
            "workflow run failed",
        )
        logger.debug(
            "Traced workflow run",
            extra={"owner": owner, "repo": repo, "run_id": run.id, "jobs": len(jobs)},
        )
        return trace_ids

    def _trace_job(self, run_ctx: Any, job: WorkflowJob) -> str:
        job_ctx, job_span = self._sink.start_span(
            run_ctx, job.name, job.started_at, self._job_attributes(job)
        )
        for step in job.steps:
            self._trace_step(job_ctx, step)
        self._sink.end_span(
            job_span,
            job.completed_at,
            _status_for(job.conclusion),
            "workflow job failed",
        )
        return self._sink.trace_id_of(job_span)

    def _trace_step(self, job_ctx: Any, step: WorkflowStep) -> None:
        _, step_span = self._sink.start_span(
            job_ctx, step.name, step.started_at, self._step_attributes(step)
        )
        self._sink.end_span(
            step_span,
            step.completed_at,
            _status_for(step.conclusion),
            "workflow step failed",
        )

    @staticmethod
    def _check_timestamps(run: WorkflowRun, jobs: Sequence[WorkflowJob]) -> None:
        _require(run.created_at, "workflow_run.created_at")
        _require(run.updated_at, "workflow_run.updated_at")
        for job in jobs:
            _require(job.started_at, f"workflow_job[{job.id}].started_at")
            _require(job.completed_at, f"workflow_job[{job.id}].completed_at")
            for step in job.steps:
                _require(step.started_at, f"workflow_job[{job.id}].steps[{step.number}].started_at")
                _require(step.completed_at, f"workflow_job[{job.id}].steps[{step.number}].completed_at")

    @staticmethod
    def _run_attributes(owner: str, repo: str, run: WorkflowRun) -> Dict[str, Any]:
        attributes = {
            "github.owner": owner,
            "github.repo": repo,
            "github.workflow_id": run.workflow_id,
            "github.run_id": run.id,
            "github.run_number": run.run_number,
            "github.run_attempt": run.run_attempt,
            "github.html_url": run.html_url,
            "github.created_at": _format_timestamp(run.created_at),
            "github.run_started_at": _format_timestamp(run.run_started_at),
            "github.updated_at": _format_timestamp(run.updated_at),
            "github.event": run.event,
            "github.status": run.status,
            "github.conclusion": run.conclusion,
            "github.head_branch": run.head_branch,
            "github.head_sha": run.head_sha,
        }
        pull_request = run.pull_request
        if pull_request is not None:
            attributes.update(
                {
                    "github.head_ref": pull_request.head.ref,
                    "github.base_ref": pull_request.base.ref,
                    "github.base_sha": pull_request.base.sha,
                    "github.pull_request.url": pull_request.url,
                }
            )
        return _compact(attributes)

    @staticmethod
    def _job_attributes(job: WorkflowJob) -> Dict[str, Any]:
        return _compact(
            {
                "github.job.id": job.id,
                "github.job.run_id": job.run_id,
                "github.job.name": job.name,
                "github.job.status": job.status,
                "github.job.conclusion": job.conclusion,
                "github.job.html_url": job.html_url,
                "github.job.started_at": _format_timestamp(job.started_at),
                "github.job.completed_at": _format_timestamp(job.completed_at),
                "github.job.runs_on": list(job.labels),
                "github.job.runner_group_id": job.runner_group_id,
                "github.job.runner_group_name": job.runner_group_name,
                "github.job.runner_name": job.runner_name,
            }
        )

    @staticmethod
    def _step_attributes(step: WorkflowStep) -> Dict[str, Any]:
        return _compact(
            {
                "github.step.name": step.name,
                "github.step.status": step.status,
                "github.step.conclusion": step.conclusion,
                "github.step.started_at": _format_timestamp(step.started_at),
                "github.step.completed_at": _format_timestamp(step.completed_at),
                "github.step.number": step.number,
            }
        )
