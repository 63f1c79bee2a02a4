"""Centralised configuration loader for the exporter."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class ServerSettings(BaseModel):
    host: str = Field(default_factory=lambda: os.getenv("EXPORTER_HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("EXPORTER_PORT", "8081")))


class GitHubSettings(BaseModel):
    api_url: str = Field(
        default_factory=lambda: os.getenv("GITHUB_API_URL", "https://api.github.com")
    )
    token: Optional[str] = Field(
        default_factory=lambda: os.getenv("GITHUB_TOKEN") or os.getenv("GHA_PAT")
    )
    app_id: Optional[str] = Field(default_factory=lambda: os.getenv("GITHUB_APP_ID"))
    private_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("GITHUB_APP_PRIVATE_KEY")
    )
    installation_id: Optional[str] = Field(
        default_factory=lambda: os.getenv("GITHUB_APP_INSTALLATION_ID")
    )
    timeout_seconds: float = Field(default=120.0)

    @property
    def uses_app_auth(self) -> bool:
        return bool(self.app_id and self.private_key and self.installation_id)


class OTelSettings(BaseModel):
    # None lets the OTLP exporter fall back to the standard OTEL_* variables.
    endpoint: Optional[str] = Field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    )
    insecure: bool = Field(default_factory=lambda: _env_flag("OTEL_INSECURE"))
    service_name: str = Field(default="github-actions-otel-exporter")
    service_version: str = Field(default="0.1.0")


class LokiSettings(BaseModel):
    """Loki push settings; defaults follow the Loki reference client."""

    endpoint: Optional[str] = Field(default_factory=lambda: os.getenv("LOKI_ENDPOINT"))
    auth_header: Optional[str] = Field(
        default_factory=lambda: os.getenv("LOKI_AUTH_HEADER")
    )
    tenant_id: Optional[str] = Field(default_factory=lambda: os.getenv("LOKI_TENANT_ID"))
    batch_wait_seconds: float = Field(default=1.0)
    batch_size_bytes: int = Field(default=1024 * 1024)
    timeout_seconds: float = Field(default=10.0)
    max_retries: int = Field(default=10)
    min_backoff_seconds: float = Field(default=0.5)
    max_backoff_seconds: float = Field(default=300.0)
    # push_line blocks once this many lines are waiting to be batched
    max_pending_entries: int = Field(default=10_000)

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint)


class WorkerSettings(BaseModel):
    poll_interval_seconds: float = Field(default=0.5)
    # None blocks the webhook handler until the worker accepts the event.
    enqueue_timeout_seconds: Optional[float] = Field(default=None)


class LoggingSettings(BaseModel):
    """Logging configuration loaded from exporter.yml."""

    level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


class Settings(BaseModel):
    environment: str = Field(default="local")
    server: ServerSettings = Field(default_factory=ServerSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    otel: OTelSettings = Field(default_factory=OTelSettings)
    loki: LokiSettings = Field(default_factory=LokiSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config at {path} must be a mapping")
        return data


def _config_path() -> Path:
    env_path = os.getenv("EXPORTER_CONFIG")
    if env_path:
        return Path(env_path).expanduser().resolve()
    current = Path(__file__).resolve()
    for parent in current.parents:
        candidate = parent / "config" / "exporter.yml"
        if candidate.exists():
            return candidate
    return Path.cwd() / "config" / "exporter.yml"


def load_settings(path: Optional[Path] = None) -> Settings:
    raw = _load_yaml(path or _config_path())
    return Settings(**raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
