"""Span emission seam between the trace builder and OpenTelemetry."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Protocol, Tuple

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span, Status, StatusCode, Tracer

# Attribute values the OTel API accepts.
AttributeValue = Any


class SpanStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class TraceSink(Protocol):
    def start_span(
        self,
        parent: Optional[Any],
        name: str,
        start_time: datetime,
        attributes: Mapping[str, AttributeValue],
    ) -> Tuple[Any, Any]:
        """Open a span under ``parent`` (None starts a new trace).

        Returns the context children should be parented to and the span handle.
        """
        ...

    def end_span(
        self,
        span: Any,
        end_time: datetime,
        status: SpanStatus,
        description: Optional[str] = None,
    ) -> None:
        ...

    def trace_id_of(self, span: Any) -> str:
        ...


def to_unix_nano(moment: datetime) -> int:
    """Nanoseconds since the epoch, exact for microsecond datetimes."""
    delta = moment - datetime(1970, 1, 1, tzinfo=moment.tzinfo)
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


class OTelTraceSink:
    """TraceSink backed by an explicitly injected OpenTelemetry tracer."""

    def __init__(self, tracer: Tracer):
        self._tracer = tracer

    def start_span(
        self,
        parent: Optional[Context],
        name: str,
        start_time: datetime,
        attributes: Mapping[str, AttributeValue],
    ) -> Tuple[Context, Span]:
        # A blank context keeps any ambient span from becoming the root's parent.
        parent_ctx = parent if parent is not None else otel_context.Context()
        span = self._tracer.start_span(
            name,
            context=parent_ctx,
            start_time=to_unix_nano(start_time),
            attributes=dict(attributes),
        )
        return trace.set_span_in_context(span, parent_ctx), span

    def end_span(
        self,
        span: Span,
        end_time: datetime,
        status: SpanStatus,
        description: Optional[str] = None,
    ) -> None:
        if status is SpanStatus.ERROR:
            span.set_status(Status(StatusCode.ERROR, description))
        span.end(end_time=to_unix_nano(end_time))

    def trace_id_of(self, span: Span) -> str:
        return trace.format_trace_id(span.get_span_context().trace_id)
