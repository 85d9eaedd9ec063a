"""Background loop moving lingering and retry-ready batches to the thread pool."""

from __future__ import annotations

import logging
import threading
import time

from logservice.producer.accumulator import LogAccumulator
from logservice.producer.batch import ProducerBatch
from logservice.producer.config import ProducerConfig
from logservice.producer.io_worker import IoWorker
from logservice.producer.logs import get_time_ms
from logservice.producer.retry_queue import RetryQueue
from logservice.producer.thread_pool import IoThreadPool


def _now_ms() -> int:
    return get_time_ms(time.time_ns())


class Mover:
    """Sends batches that have lingered long enough, and batches due for retry."""

    def __init__(
        self,
        log_accumulator: LogAccumulator,
        retry_queue: RetryQueue,
        io_worker: IoWorker,
        logger: logging.Logger,
        thread_pool: IoThreadPool,
        config: ProducerConfig,
    ) -> None:
        self.shutdown = threading.Event()
        self.retry_queue = retry_queue
        self.io_worker = io_worker
        self.log_accumulator = log_accumulator
        self.logger = logger
        self.thread_pool = thread_pool
        self.config = config

    def _send(self, key: str, batch: ProducerBatch) -> None:
        current = self.log_accumulator.log_group_data.get(key)
        if current is None or _now_ms() - current.create_time_ms < self.config.linger_ms:
            return
        self.thread_pool.add_task(batch)
        del self.log_accumulator.log_group_data[key]

    def run(self) -> None:
        """Loop until shutdown, then flush every open and retrying batch."""
        linger_ms = self.config.linger_ms
        while not self.shutdown.is_set():
            sleep_ms = linger_ms
            now_ms = _now_ms()
            with self.log_accumulator.lock:
                data = self.log_accumulator.log_group_data
                batch_count = len(data)
                for key, batch in list(data.items()):
                    remaining = batch.create_time_ms + linger_ms - now_ms
                    if remaining <= 0:
                        self.logger.debug("mover sends producerBatch to IoWorker")
                        self._send(key, batch)
                    else:
                        sleep_ms = min(sleep_ms, remaining)
            if batch_count == 0:
                sleep_ms = linger_ms

            ready = self.retry_queue.pop_ready(self.shutdown.is_set())
            if ready:
                for batch in ready:
                    self.thread_pool.add_task(batch)
            else:
                self.shutdown.wait(sleep_ms / 1000)

        with self.log_accumulator.lock:
            for batch in self.log_accumulator.log_group_data.values():
                self.thread_pool.add_task(batch)
            self.log_accumulator.log_group_data = {}

        for batch in self.retry_queue.pop_ready(self.shutdown.is_set()):
            self.thread_pool.add_task(batch)
        self.logger.info("mover thread closure complete")