"""Grouping of incoming logs into batches per destination."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from logservice.producer.batch import ProducerBatch
from logservice.producer.config import DELIMITER, ProducerConfig
from logservice.producer.io_worker import CallBack, IoWorker
from logservice.producer.logs import Log, get_log_list_size, get_log_size
from logservice.producer.thread_pool import IoThreadPool

_MAX_LOG_GROUP_BYTES = 5 * 1024 * 1024


def _is_log_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, Log) for item in value)


class LogAccumulator:
    """Collects logs into open batches and hands full batches to the thread pool.

    The producer needs adjust_log_group_size(delta) to track buffered bytes.
    """

    def __init__(
        self,
        config: ProducerConfig,
        io_worker: IoWorker,
        logger: logging.Logger,
        thread_pool: IoThreadPool,
        producer: Any,
    ) -> None:
        self.lock = threading.RLock()
        self.log_group_data: dict[str, ProducerBatch] = {}
        self.config = config
        self.io_worker = io_worker
        self.shutdown = threading.Event()
        self.logger = logger
        self.thread_pool = thread_pool
        self.producer = producer

    def add_log(
        self,
        project: str,
        logstore: str,
        shard_hash: str,
        topic: str,
        source: str,
        log_data: Log | list[Log],
        callback: Optional[CallBack],
    ) -> None:
        """Add one log or a list of logs to the batch for its destination."""
        if self.shutdown.is_set():
            self.logger.warning("Producer has started and shut down and cannot write to new logs")
            raise RuntimeError("Producer has started and shut down and cannot write to new logs")
        if isinstance(log_data, Log):
            size_of = get_log_size
        elif _is_log_list(log_data):
            size_of = get_log_list_size
        else:
            self.logger.error("Invalid logType")
            raise TypeError("Invalid logType")

        key = self.key(project, logstore, topic, shard_hash, source)
        with self.lock:
            batch = self.log_group_data.get(key)
            if batch is None:
                self._create_batch(log_data, callback, key, project, logstore, topic, source, shard_hash)
                return
            size = size_of(log_data)
            with batch.lock:
                batch.total_data_size += size
            self.producer.adjust_log_group_size(size)
            self._add_or_send(key, project, logstore, topic, source, shard_hash, batch, log_data, callback)

    def _add_or_send(
        self,
        key: str,
        project: str,
        logstore: str,
        topic: str,
        source: str,
        shard_hash: str,
        batch: ProducerBatch,
        log_data: Log | list[Log],
        callback: Optional[CallBack],
    ) -> None:
        count = batch.log_count() + 1
        size = batch.total_data_size
        max_size = self.config.max_batch_size
        fits_count = count <= self.config.max_batch_count
        if size > max_size and size < _MAX_LOG_GROUP_BYTES and fits_count:
            batch.add_logs(log_data)
            if callback is not None:
                batch.add_callback(callback)
            self._send(key, batch)
        elif size <= max_size and fits_count:
            batch.add_logs(log_data)
            if callback is not None:
                batch.add_callback(callback)
        else:
            self._send(key, batch)
            self._create_batch(log_data, callback, key, project, logstore, topic, source, shard_hash)

    def _create_batch(
        self,
        log_data: Log | list[Log],
        callback: Optional[CallBack],
        key: str,
        project: str,
        logstore: str,
        topic: str,
        source: str,
        shard_hash: str,
    ) -> None:
        self.logger.debug("Create a new ProducerBatch")
        self.log_group_data[key] = ProducerBatch(
            log_data, callback, project, logstore, topic, source, shard_hash, self.config
        )

    def _send(self, key: str, batch: ProducerBatch) -> None:
        self.logger.debug("Send producerBatch to IoWorker from logAccumulator")
        self.thread_pool.add_task(batch)
        del self.log_group_data[key]

    def key(self, project: str, logstore: str, topic: str, shard_hash: str, source: str) -> str:
        """The batch key of a destination."""
        return DELIMITER.join((project, logstore, topic, shard_hash, source))