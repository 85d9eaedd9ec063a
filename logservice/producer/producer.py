"""The batching log producer: accepts logs and delivers them in the background."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from logservice.logconf import producer_logger
from logservice.producer.accumulator import LogAccumulator
from logservice.producer.adjusthash import adjust_hash
from logservice.producer.config import ProducerConfig
from logservice.producer.io_worker import CallBack, IoWorker
from logservice.producer.logs import Log
from logservice.producer.mover import Mover
from logservice.producer.retry_queue import RetryQueue
from logservice.producer.thread_pool import IoThreadPool

TIMEOUT_EXCEPTION = "TimeoutExecption"
ILLEGAL_STATE_EXCEPTION = "IllegalStateException"

_MAX_BATCH_COUNT = 40960
_MAX_BATCH_SIZE = 1024 * 1024 * 5
_DEFAULT_RESERVED_ATTEMPTS = 11
_DEFAULT_IO_WORKERS = 50
_DEFAULT_BASE_BACKOFF_MS = 100
_DEFAULT_TOTAL_SIZE = 100 * 1024 * 1024
_MIN_LINGER_MS = 100
_DEFAULT_LINGER_MS = 2000
_CLOSE_POLL_SECONDS = 0.1


def validate_producer_config(config: ProducerConfig) -> ProducerConfig:
    """Correct out-of-range settings in place, warning about each, and return config."""
    logger = producer_logger(config)
    if config.max_reserved_attempts <= 0:
        logger.warning(
            "This MaxReservedAttempts parameter must be greater than zero,"
            "program auto correction to default value"
        )
        config.max_reserved_attempts = _DEFAULT_RESERVED_ATTEMPTS
    if config.max_batch_count > _MAX_BATCH_COUNT or config.max_batch_count <= 0:
        logger.warning(
            "The parameter MaxBatchCount exceeds the set maximum and has been reset "
            "to the set maximum of 40960."
        )
        config.max_batch_count = _MAX_BATCH_COUNT
    if config.max_batch_size > _MAX_BATCH_SIZE or config.max_batch_size <= 0:
        logger.warning(
            "The parameter MaxBatchSize exceeds the settable maximum and has reset "
            "a single logGroup memory size of up to 5M."
        )
        config.max_batch_size = _MAX_BATCH_SIZE
    if config.max_io_worker_count <= 0:
        logger.warning(
            "The MaxIoWorkerCount parameter cannot be less than zero and has been "
            "reset to the default value of 50"
        )
        config.max_io_worker_count = _DEFAULT_IO_WORKERS
    if config.base_retry_backoff_ms <= 0:
        logger.warning(
            "The BaseRetryBackoffMs parameter cannot be less than zero and has been "
            "reset to the default value of 100 milliseconds"
        )
        config.base_retry_backoff_ms = _DEFAULT_BASE_BACKOFF_MS
    if config.total_size_in_bytes <= 0:
        logger.warning(
            "The TotalSizeLnBytes parameter cannot be less than zero and has been "
            "reset to the default value of 100M"
        )
        config.total_size_in_bytes = _DEFAULT_TOTAL_SIZE
    if config.linger_ms < _MIN_LINGER_MS:
        logger.warning(
            "The LingerMs parameter cannot be less than 100 milliseconds and has been "
            "reset to the default value of 2000 milliseconds"
        )
        config.linger_ms = _DEFAULT_LINGER_MS
    return config


class Producer:
    """Buffers logs into batches and sends them through client on background threads.

    The client needs put_logs(project, logstore, log_group) and
    post_logstore_logs(project, logstore, log_group, shard_hash), raising on failure;
    set_http_client and set_user_agent are called when the config asks for them.
    """

    def __init__(self, config: ProducerConfig, client: Any) -> None:
        self.logger: logging.Logger = producer_logger(config)
        if config.http_client is not None:
            client.set_http_client(config.http_client)
        if config.user_agent:
            client.set_user_agent(config.user_agent)
        self.config = validate_producer_config(config)
        self.client = client
        self.buckets = self.config.buckets
        self._size_lock = threading.Lock()
        self._log_group_size = 0

        retry_queue = RetryQueue()
        self.io_worker = IoWorker(
            client,
            retry_queue,
            self.logger,
            self.config.max_io_worker_count,
            self.config.no_retry_status_codes,
            self,
        )
        self.thread_pool = IoThreadPool(self.io_worker, self.logger)
        self.log_accumulator = LogAccumulator(
            self.config, self.io_worker, self.logger, self.thread_pool, self
        )
        self.mover = Mover(
            self.log_accumulator, retry_queue, self.io_worker, self.logger, self.thread_pool, self.config
        )
        self._mover_thread: Optional[threading.Thread] = None
        self._pool_thread: Optional[threading.Thread] = None

    @property
    def log_group_size(self) -> int:
        """Bytes currently accounted as buffered."""
        with self._size_lock:
            return self._log_group_size

    def adjust_log_group_size(self, delta: int) -> None:
        with self._size_lock:
            self._log_group_size += delta

    def _over_limit(self) -> bool:
        return self.log_group_size > self.config.total_size_in_bytes

    def _wait_time(self) -> None:
        block_sec = self.config.max_block_sec
        if block_sec > 0:
            for _ in range(block_sec):
                if not self._over_limit():
                    return
                time.sleep(1)
            self.logger.error("Over producer set maximum blocking time")
            raise TimeoutError(TIMEOUT_EXCEPTION)
        if block_sec == 0:
            if self._over_limit():
                self.logger.error("Over producer set maximum blocking time")
                raise TimeoutError(TIMEOUT_EXCEPTION)
            return
        while self._over_limit():
            time.sleep(1)

    def _shard_hash(self, shard_hash: str) -> str:
        if self.config.adjust_shard_hash:
            return adjust_hash(shard_hash, self.buckets)
        return ""

    def _add(self, project, logstore, shard_hash, topic, source, log_data, callback) -> None:
        self.log_accumulator.add_log(project, logstore, shard_hash, topic, source, log_data, callback)

    def send_log(self, project: str, logstore: str, topic: str, source: str, log: Log) -> None:
        self._wait_time()
        self._add(project, logstore, "", topic, source, log, None)

    def send_log_list(self, project: str, logstore: str, topic: str, source: str, logs: list[Log]) -> None:
        self._wait_time()
        self._add(project, logstore, "", topic, source, logs, None)

    def hash_send_log(
        self, project: str, logstore: str, shard_hash: str, topic: str, source: str, log: Log
    ) -> None:
        self._wait_time()
        self._add(project, logstore, self._shard_hash(shard_hash), topic, source, log, None)

    def hash_send_log_list(
        self, project: str, logstore: str, shard_hash: str, topic: str, source: str, logs: list[Log]
    ) -> None:
        self._wait_time()
        self._add(project, logstore, self._shard_hash(shard_hash), topic, source, logs, None)

    def send_log_with_callback(
        self, project: str, logstore: str, topic: str, source: str, log: Log, callback: CallBack
    ) -> None:
        self._wait_time()
        self._add(project, logstore, "", topic, source, log, callback)

    def send_log_list_with_callback(
        self, project: str, logstore: str, topic: str, source: str, logs: list[Log], callback: CallBack
    ) -> None:
        self._wait_time()
        self._add(project, logstore, "", topic, source, logs, callback)

    def hash_send_log_with_callback(
        self,
        project: str,
        logstore: str,
        shard_hash: str,
        topic: str,
        source: str,
        log: Log,
        callback: CallBack,
    ) -> None:
        self._wait_time()
        self._add(project, logstore, self._shard_hash(shard_hash), topic, source, log, callback)

    def hash_send_log_list_with_callback(
        self,
        project: str,
        logstore: str,
        shard_hash: str,
        topic: str,
        source: str,
        logs: list[Log],
        callback: CallBack,
    ) -> None:
        self._wait_time()
        self._add(project, logstore, self._shard_hash(shard_hash), topic, source, logs, callback)

    def start(self) -> None:
        """Start the mover and the sending thread pool."""
        self.logger.info("producer mover start")
        self._mover_thread = threading.Thread(target=self.mover.run, daemon=True)
        self._mover_thread.start()
        self._pool_thread = threading.Thread(target=self.thread_pool.run, daemon=True)
        self._pool_thread.start()

    def _stop_mover(self) -> None:
        self._send_close_signal()
        if self._mover_thread is not None:
            self._mover_thread.join()
        self.thread_pool.shutdown.set()

    def close(self, timeout_ms: int) -> None:
        """Stop accepting logs and wait up to timeout_ms for pending sends.

        Raises TimeoutError if data is still pending when the time is up.
        """
        started = time.monotonic()
        self._stop_mover()
        while True:
            if self.io_worker.task_count == 0 and not self.thread_pool.has_task():
                self.logger.info("All groutines of producer have been shutdown")
                return
            if (time.monotonic() - started) * 1000 > timeout_ms:
                self.logger.warning(
                    "The producer timeout closes, and some of the cached data may not be sent properly"
                )
                raise TimeoutError(TIMEOUT_EXCEPTION)
            time.sleep(_CLOSE_POLL_SECONDS)

    def safe_close(self) -> None:
        """Stop accepting logs and wait until every pending batch has been handled."""
        self._stop_mover()
        if self._pool_thread is not None:
            self._pool_thread.join()
        while self.io_worker.task_count > 0:
            time.sleep(0.01)
        self.logger.info("Producer close finish")

    def _send_close_signal(self) -> None:
        self.logger.info("producer start closing")
        if self.config.sts_token_shutdown is not None:
            self.config.sts_token_shutdown.set()
            self.logger.info("producer closed ststoken")
        self.mover.shutdown.set()
        self.log_accumulator.shutdown.set()
        self.io_worker.retry_queue_shutdown.set()