from .trace_sink import OTelTraceSink, SpanStatus, TraceSink, to_unix_nano
from .workflow_tracer import WorkflowTraceBuilder

__all__ = [
    "OTelTraceSink",
    "SpanStatus",
    "TraceSink",
    "WorkflowTraceBuilder",
    "to_unix_nano",
]
