"""Ship a job's log archive to the log sink, correlated with its trace."""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Mapping, Optional, Protocol, Union

from gha_exporter.core import metrics
from gha_exporter.core.exceptions import LogShippingError, MissingFieldError
from gha_exporter.models import WorkflowJob, WorkflowRun
from gha_exporter.services.github.exceptions import GithubError
from gha_exporter.services.tracing.trace_sink import to_unix_nano

logger = logging.getLogger(__name__)

# GitHub prefixes each log line with e.g. 2024-03-01T12:00:00.1234567Z
TIMESTAMP_WIDTH = 28
_TIMESTAMP_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d{7})Z"
)


class LogSink(Protocol):
    def push_line(self, labels: Mapping[str, str], timestamp_ns: int, line: str) -> None:
        ...

    def close(self) -> None:
        ...


class LogArchiveSource(Protocol):
    def get_job_log_url(
        self, owner: str, repo: str, job_id: int, max_redirects: int = 1
    ) -> str:
        ...

    def fetch_log_archive(self, url: str) -> str:
        ...


@dataclass(frozen=True)
class Configured:
    sink: LogSink


@dataclass(frozen=True)
class Disabled:
    pass


LogSinkOption = Union[Configured, Disabled]


def parse_log_timestamp(line: str) -> Optional[int]:
    """Return the line's timestamp prefix in Unix nanoseconds, or None."""
    match = _TIMESTAMP_RE.fullmatch(line[:TIMESTAMP_WIDTH])
    if match is None:
        return None
    year, month, day, hour, minute, second, fraction = match.groups()
    try:
        moment = datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second)
        )
    except ValueError:
        return None
    return calendar.timegm(moment.timetuple()) * 1_000_000_000 + int(fraction) * 100


def build_labels(
    owner: str, repo: str, run: WorkflowRun, job: WorkflowJob, job_trace_id: str
) -> Dict[str, str]:
    return {
        # Links the lines to the job span
        "trace_id": job_trace_id,
        "repo_owner": owner,
        "repo_name": repo,
        "workflow_name": run.name,
        "workflow_id": str(run.id),
        "workflow_job_name": job.name,
        "workflow_job_id": str(job.id),
    }


class LogShipper:
    def __init__(self, source: LogArchiveSource, sink: LogSinkOption):
        self._source = source
        self._sink = sink

    @property
    def enabled(self) -> bool:
        return isinstance(self._sink, Configured)

    def ship_logs(
        self,
        owner: str,
        repo: str,
        run: WorkflowRun,
        job: WorkflowJob,
        job_trace_id: str,
    ) -> int:
        """
        Forward every non-empty line of the job's log archive, in file order.

        Lines without their own timestamp (continuations of a multi-line
        entry) reuse the last parsed one, starting from the job start time.
        Returns the number of lines forwarded.
        """
        if not isinstance(self._sink, Configured):
            logger.debug("Log sink not configured, not retrieving logs")
            return 0
        sink = self._sink.sink

        if job.started_at is None:
            raise MissingFieldError(f"workflow_job[{job.id}].started_at")

        try:
            url = self._source.get_job_log_url(owner, repo, job.id, max_redirects=1)
            content = self._source.fetch_log_archive(url)
        except GithubError as exc:
            raise LogShippingError(
                f"could not retrieve logs for job {job.id} of {owner}/{repo}: {exc}",
                job_id=job.id,
            ) from exc

        labels = build_labels(owner, repo, run, job, job_trace_id)
        last_timestamp = to_unix_nano(job.started_at)
        shipped = 0
        for line_number, line in enumerate(content.split("\n"), start=1):
            if not line:
                continue
            timestamp = parse_log_timestamp(line)
            if timestamp is None:
                metrics.LOG_LINES_WITHOUT_TIMESTAMP.inc()
                logger.warning(
                    "Error parsing timestamp from log line, reusing previous one",
                    extra={"job_id": job.id, "line_number": line_number},
                )
            else:
                last_timestamp = timestamp
            sink.push_line(labels, last_timestamp, line)
            shipped += 1

        metrics.LOG_LINES_SHIPPED.inc(shipped)
        return shipped
