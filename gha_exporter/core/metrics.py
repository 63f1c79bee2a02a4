"""Prometheus metrics for the exporter, served at /metrics."""

from prometheus_client import Counter

WEBHOOK_EVENTS = Counter(
    "gha_exporter_webhook_events_total",
    "Webhook deliveries received",
    ["outcome"],  # queued, ignored, rejected, unavailable
)

RUNS_PROCESSED = Counter(
    "gha_exporter_workflow_runs_processed_total",
    "Workflow runs taken off the queue",
    ["status"],  # success, failed
)

JOB_LOG_SHIPMENTS = Counter(
    "gha_exporter_job_log_shipments_total",
    "Per-job log shipping attempts",
    ["status"],  # success, failed, skipped
)

LOG_LINES_SHIPPED = Counter(
    "gha_exporter_log_lines_shipped_total",
    "Log lines handed to the log sink",
)

LOG_LINES_WITHOUT_TIMESTAMP = Counter(
    "gha_exporter_log_lines_without_timestamp_total",
    "Log lines that inherited the previous line's timestamp",
)
