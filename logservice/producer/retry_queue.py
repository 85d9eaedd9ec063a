"""Batches waiting to be sent again, ordered by their next retry time."""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from typing import Callable, Optional

from logservice.producer.batch import ProducerBatch
from logservice.producer.logs import get_time_ms


def _now_ms() -> int:
    return get_time_ms(time.time_ns())


class RetryQueue:
    """A thread-safe priority queue of batches keyed on next_retry_ms."""

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._heap: list[tuple[int, int, ProducerBatch]] = []
        self._order = itertools.count()
        self._lock = threading.Lock()
        self._clock = clock or _now_ms

    def push(self, batch: Optional[ProducerBatch]) -> None:
        if batch is None:
            return
        with self._lock:
            heapq.heappush(self._heap, (batch.next_retry_ms, next(self._order), batch))

    def pop_ready(self, shutdown: bool) -> list[ProducerBatch]:
        """Remove and return batches whose retry time has passed, or all on shutdown."""
        ready: list[ProducerBatch] = []
        with self._lock:
            now = self._clock()
            while self._heap and (shutdown or self._heap[0][0] < now):
                ready.append(heapq.heappop(self._heap)[2])
        return ready

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)