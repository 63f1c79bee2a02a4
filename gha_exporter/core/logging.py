import logging
import sys
from typing import Any

from opentelemetry import trace
from pythonjsonlogger import jsonlogger


class OTelJSONFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that adds the active OpenTelemetry trace/span ids, if any.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid:
            log_record.setdefault("trace_id", trace.format_trace_id(ctx.trace_id))
            log_record.setdefault("span_id", trace.format_span_id(ctx.span_id))

        log_record["level"] = str(log_record.get("level", record.levelname)).upper()


def setup_logging(level: str = "INFO", service_name: str | None = None) -> None:
    """
    Configure the root logger to write JSON lines to stdout.
    """
    handler = logging.StreamHandler(sys.stdout)
    formatter = OTelJSONFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
        static_fields={"service": service_name} if service_name else {},
    )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # Request logging is done by our own middleware
    logging.getLogger("uvicorn.access").disabled = True
    logging.getLogger("httpx").setLevel("WARNING")
    logging.getLogger("httpcore").setLevel("WARNING")
