"""A batch of logs that share a destination and are sent together."""

from __future__ import annotations

import threading
import time
from typing import Any, Iterable

from logservice.producer.config import ProducerConfig
from logservice.producer.logs import Log, LogGroup, get_time_ms
from logservice.producer.result import Result


def _as_logs(log_data: Any) -> list[Log]:
    if isinstance(log_data, Log):
        return [log_data]
    if isinstance(log_data, (list, tuple)) and all(isinstance(item, Log) for item in log_data):
        return list(log_data)
    raise TypeError("Invalid logType")


class ProducerBatch:
    """Logs waiting to be sent to one project, log store, topic, source and shard."""

    def __init__(
        self,
        log_data: Log | Iterable[Log],
        callback: Any,
        project: str,
        logstore: str,
        topic: str,
        source: str,
        shard_hash: str,
        config: ProducerConfig,
    ) -> None:
        self.lock = threading.RLock()
        self.log_group = LogGroup(logs=_as_logs(log_data), topic=topic, source=source)
        self.attempt_count = 0
        self.base_retry_backoff_ms = config.base_retry_backoff_ms
        self.next_retry_ms = 0
        self.max_retry_interval_ms = config.max_retry_backoff_ms
        self.callbacks: list[Any] = [] if callback is None else [callback]
        self.create_time_ms = get_time_ms(time.time_ns())
        self.max_retry_times = config.retries
        self.project = project
        self.logstore = logstore
        self.shard_hash = shard_hash or None
        self.result = Result()
        self.max_reserved_attempts = config.max_reserved_attempts
        self.total_data_size = self.log_group.size()

    def add_logs(self, logs: Log | Iterable[Log]) -> None:
        """Append one log or a list of logs."""
        items = _as_logs(logs)
        with self.lock:
            self.log_group.logs.extend(items)

    def add_callback(self, callback: Any) -> None:
        with self.lock:
            self.callbacks.append(callback)

    def log_count(self) -> int:
        with self.lock:
            return len(self.log_group.logs)