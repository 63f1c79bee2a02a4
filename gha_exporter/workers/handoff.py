"""
Zero-capacity hand-off queue between the webhook handlers and the worker.

``put`` returns only once a consumer has taken the item, so a producer is held
until the worker is free. Throughput is therefore capped at one run's full
processing time per delivery; widening this to a buffered queue would not
change how an individual event is processed.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Generic, Optional, TypeVar

from gha_exporter.core.exceptions import QueueClosedError

T = TypeVar("T")

_EMPTY = object()


class HandoffQueue(Generic[T]):
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._slot: object = _EMPTY
        self._offered = 0
        self._taken = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, item: T, timeout: Optional[float] = None) -> None:
        """
        Offer ``item`` and block until a consumer takes it.

        Raises ``queue.Full`` when ``timeout`` elapses first and
        ``QueueClosedError`` when the queue is closed while waiting.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            # Wait for any other producer's offer to be taken
            if not self._wait(lambda: self._slot is _EMPTY or self._closed, deadline):
                raise queue.Full
            if self._closed:
                raise QueueClosedError("queue is closed")

            self._slot = item
            self._offered += 1
            ticket = self._offered
            self._cond.notify_all()

            if self._wait(lambda: self._taken >= ticket or self._closed, deadline):
                if self._taken >= ticket:
                    return
            # Timed out or closed before a consumer arrived: withdraw the offer
            self._slot = _EMPTY
            self._offered -= 1
            self._cond.notify_all()
            if self._closed:
                raise QueueClosedError("queue is closed")
            raise queue.Full

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Take the offered item, or return None on timeout or close."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            self._wait(lambda: self._slot is not _EMPTY or self._closed, deadline)
            if self._closed or self._slot is _EMPTY:
                return None
            item = self._slot
            self._slot = _EMPTY
            self._taken += 1
            self._cond.notify_all()
            return item  # type: ignore[return-value]

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def _wait(self, predicate, deadline: Optional[float]) -> bool:
        if deadline is None:
            return self._cond.wait_for(predicate)
        return self._cond.wait_for(predicate, timeout=max(deadline - time.monotonic(), 0.0))
