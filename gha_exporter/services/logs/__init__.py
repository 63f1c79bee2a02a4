from .log_shipper import (
    Configured,
    Disabled,
    LogShipper,
    LogSink,
    LogSinkOption,
    build_labels,
    parse_log_timestamp,
)
from .loki_client import LokiClient

__all__ = [
    "Configured",
    "Disabled",
    "LogShipper",
    "LogSink",
    "LogSinkOption",
    "LokiClient",
    "build_labels",
    "parse_log_timestamp",
]
