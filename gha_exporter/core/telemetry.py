"""OpenTelemetry tracer provider wiring."""

import logging

from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from .config import OTelSettings

logger = logging.getLogger(__name__)

TRACER_NAME = "github.actions"


def setup_tracer_provider(
    settings: OTelSettings,
    exporter: SpanExporter | None = None,
    environment: str | None = None,
) -> TracerProvider:
    """
    Build a tracer provider exporting over OTLP/gRPC.

    The provider is handed to the components that need it and is never
    registered as the process-wide global.
    """
    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.service_version,
            **({"deployment.environment": environment} if environment else {}),
        }
    )
    if exporter is None:
        exporter = OTLPSpanExporter(endpoint=settings.endpoint, insecure=settings.insecure)
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info(
        "Tracer provider configured",
        extra={"otlp_endpoint": settings.endpoint or "<from environment>", "insecure": settings.insecure},
    )
    return provider
