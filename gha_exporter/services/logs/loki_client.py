"""
Loki push client.

Lines are queued by ``push_line`` and sent by a background thread in batches
grouped per label set. Batches flush once they reach ``batch_size_bytes`` or
``batch_wait_seconds`` after their first line, whichever comes first.
At most ``max_pending_entries`` lines wait for the sender; beyond that
``push_line`` blocks, so a stalled Loki slows the caller instead of growing
the buffer.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

import httpx

from gha_exporter.core.config import LokiSettings
from gha_exporter.core.exceptions import LokiClientClosedError

logger = logging.getLogger(__name__)

_STOP = object()

LabelKey = FrozenSet[Tuple[str, str]]


class _Batch:
    def __init__(self) -> None:
        self.streams: Dict[LabelKey, List[List[str]]] = {}
        self.size_bytes = 0
        self.started_at: Optional[float] = None

    def add(self, labels: Mapping[str, str], timestamp_ns: int, line: str) -> None:
        if self.started_at is None:
            self.started_at = time.monotonic()
        key = frozenset(labels.items())
        self.streams.setdefault(key, []).append([str(timestamp_ns), line])
        self.size_bytes += len(line.encode("utf-8"))

    def is_empty(self) -> bool:
        return not self.streams

    def age(self) -> float:
        if self.started_at is None:
            return 0.0
        return time.monotonic() - self.started_at

    def payload(self) -> Dict[str, list]:
        return {
            "streams": [
                {"stream": dict(sorted(key)), "values": values}
                for key, values in self.streams.items()
            ]
        }


class LokiClient:
    def __init__(
        self,
        endpoint: str,
        auth_header: Optional[str] = None,
        tenant_id: Optional[str] = None,
        batch_wait_seconds: float = 1.0,
        batch_size_bytes: int = 1024 * 1024,
        timeout_seconds: float = 10.0,
        max_retries: int = 10,
        min_backoff_seconds: float = 0.5,
        max_backoff_seconds: float = 300.0,
        max_pending_entries: int = 10_000,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("Loki endpoint is required")
        if max_pending_entries < 1:
            raise ValueError("max_pending_entries must be at least 1")
        self._endpoint = endpoint
        self._batch_wait = batch_wait_seconds
        self._batch_size = batch_size_bytes
        self._max_retries = max_retries
        self._min_backoff = min_backoff_seconds
        self._max_backoff = max_backoff_seconds

        headers = {"Content-Type": "application/json"}
        if auth_header:
            headers["Authorization"] = auth_header
        if tenant_id:
            headers["X-Scope-OrgID"] = tenant_id
        self._http = httpx.Client(headers=headers, timeout=timeout_seconds, transport=transport)

        self._entries: "queue.Queue[object]" = queue.Queue(maxsize=max_pending_entries)
        self._closed = False
        self._close_lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name="loki-client", daemon=True)
        self._thread.start()

    @classmethod
    def from_settings(cls, settings: LokiSettings) -> "LokiClient":
        return cls(
            endpoint=settings.endpoint,
            auth_header=settings.auth_header,
            tenant_id=settings.tenant_id,
            batch_wait_seconds=settings.batch_wait_seconds,
            batch_size_bytes=settings.batch_size_bytes,
            timeout_seconds=settings.timeout_seconds,
            max_retries=settings.max_retries,
            min_backoff_seconds=settings.min_backoff_seconds,
            max_backoff_seconds=settings.max_backoff_seconds,
            max_pending_entries=settings.max_pending_entries,
        )

    def push_line(self, labels: Mapping[str, str], timestamp_ns: int, line: str) -> None:
        if self._closed:
            raise LokiClientClosedError("Loki client is closed")
        self._entries.put((dict(labels), timestamp_ns, line))

    def close(self) -> None:
        """Flush everything queued so far and stop the sender thread."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        logger.info("Shutting down Loki client")
        self._entries.put(_STOP)
        self._thread.join()
        self._http.close()

    def _run(self) -> None:
        batch = _Batch()
        while True:
            timeout = None if batch.is_empty() else max(self._batch_wait - batch.age(), 0.0)
            try:
                item = self._entries.get(timeout=timeout)
            except queue.Empty:
                item = None

            if item is _STOP:
                if not batch.is_empty():
                    self._send(batch)
                return

            if item is not None:
                labels, timestamp_ns, line = item
                batch.add(labels, timestamp_ns, line)

            if not batch.is_empty() and (
                batch.size_bytes >= self._batch_size or batch.age() >= self._batch_wait
            ):
                self._send(batch)
                batch = _Batch()

    def _send(self, batch: _Batch) -> None:
        payload = batch.payload()
        backoff = self._min_backoff
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._http.post(self._endpoint, json=payload)
            except httpx.RequestError as exc:
                logger.warning(
                    "Loki push failed",
                    extra={"attempt": attempt, "error": str(exc)},
                )
            else:
                if response.is_success:
                    return
                if response.status_code != 429 and response.status_code < 500:
                    logger.error(
                        "Loki rejected batch, dropping it",
                        extra={"status": response.status_code, "body": response.text[:500]},
                    )
                    return
                logger.warning(
                    "Loki push failed",
                    extra={"attempt": attempt, "status": response.status_code},
                )
            if attempt < self._max_retries:
                time.sleep(backoff)
                backoff = min(backoff * 2, self._max_backoff)
        logger.error(
            "Giving up on Loki batch",
            extra={"streams": len(payload["streams"]), "retries": self._max_retries},
        )
