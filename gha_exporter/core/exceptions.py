"""Exporter error types."""

from typing import Optional


class ExporterError(Exception):
    pass


class MalformedEventError(ExporterError):
    pass


class MissingFieldError(ExporterError):
    """A run, job or step lacks a value the trace or log shipping needs."""

    def __init__(self, field: str):
        super().__init__(f"missing required field: {field}")
        self.field = field


class LogShippingError(ExporterError):
    def __init__(self, message: str, job_id: Optional[int] = None):
        super().__init__(message)
        self.job_id = job_id


class LokiClientClosedError(ExporterError):
    pass


class QueueClosedError(ExporterError):
    pass
