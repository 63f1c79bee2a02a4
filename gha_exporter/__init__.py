"""Export GitHub Actions workflow runs as OpenTelemetry traces and Loki logs."""

__version__ = "0.1.0"
