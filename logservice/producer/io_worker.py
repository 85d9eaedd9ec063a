"""Sending batches to the log service and dispatching their outcome."""

from __future__ import annotations

import abc
import logging
import threading
import time
from typing import Any, Iterable

from logservice.producer.batch import ProducerBatch
from logservice.producer.logs import get_time_ms
from logservice.producer.result import Attempt, Result
from logservice.producer.retry_queue import RetryQueue


def _now_ms() -> int:
    return get_time_ms(time.time_ns())


class CallBack(abc.ABC):
    """Receives the result of a batch once it is delivered or given up on."""

    @abc.abstractmethod
    def success(self, result: Result) -> None:
        """Called after the batch was accepted by the server."""

    @abc.abstractmethod
    def fail(self, result: Result) -> None:
        """Called after the batch could not be delivered."""


class SendError(Exception):
    """An error reported by the log service for a request."""

    def __init__(self, http_code: int, code: str = "", message: str = "", request_id: str = "") -> None:
        super().__init__(f"{code}: {message}")
        self.http_code = http_code
        self.code = code
        self.message = message
        self.request_id = request_id


def _error_details(err: BaseException) -> tuple[str, str, str]:
    if isinstance(err, SendError):
        return err.request_id, err.code, err.message
    return "", type(err).__name__, str(err)


class IoWorker:
    """Sends batches through a client, retrying failures via the retry queue.

    The client needs put_logs(project, logstore, log_group) and
    post_logstore_logs(project, logstore, log_group, shard_hash); both raise on
    failure. The producer needs adjust_log_group_size(delta), which tracks the
    number of bytes still held in memory.
    """

    def __init__(
        self,
        client: Any,
        retry_queue: RetryQueue,
        logger: logging.Logger,
        max_io_worker_count: int,
        no_retry_status_codes: Iterable[int],
        producer: Any,
    ) -> None:
        self.client = client
        self.retry_queue = retry_queue
        self.logger = logger
        self.no_retry_status_codes = frozenset(no_retry_status_codes)
        self.producer = producer
        self.retry_queue_shutdown = threading.Event()
        self._slots = threading.BoundedSemaphore(max_io_worker_count)
        self._count_lock = threading.Lock()
        self._task_count = 0

    @property
    def task_count(self) -> int:
        """Number of sends started and not yet finished."""
        with self._count_lock:
            return self._task_count

    def send_to_server(self, batch: ProducerBatch) -> None:
        """Send one batch and run its callbacks or schedule a retry."""
        self.logger.debug("ioworker send data to server")
        begin_ms = _now_ms()
        try:
            if batch.shard_hash is not None:
                self.client.post_logstore_logs(
                    batch.project, batch.logstore, batch.log_group, batch.shard_hash
                )
            else:
                self.client.put_logs(batch.project, batch.logstore, batch.log_group)
        except Exception as err:
            self._on_failure(batch, err, begin_ms)
        else:
            self._on_success(batch, begin_ms)

    def _on_success(self, batch: ProducerBatch, begin_ms: int) -> None:
        self.logger.debug("sendToServer succeeded, executing success callbacks")
        if batch.attempt_count < batch.max_reserved_attempts:
            now_ms = _now_ms()
            batch.result.attempts.append(Attempt(True, "", "", "", now_ms, now_ms - begin_ms))
        batch.result.successful = True
        self.producer.adjust_log_group_size(-batch.total_data_size)
        for callback in batch.callbacks:
            callback.success(batch.result)

    def _on_failure(self, batch: ProducerBatch, err: Exception, begin_ms: int) -> None:
        if self.retry_queue_shutdown.is_set():
            for callback in batch.callbacks:
                self._record_error(batch, err, False, begin_ms)
                callback.fail(batch.result)
            return
        self.logger.info("sendToServer failed", extra={"fields": {"error": str(err)}})
        if isinstance(err, SendError) and err.http_code in self.no_retry_status_codes:
            self._record_error(batch, err, False, begin_ms)
            self._fail(batch)
            return
        if batch.attempt_count < batch.max_retry_times:
            self._record_error(batch, err, True, begin_ms)
            wait_ms = batch.base_retry_backoff_ms * 2 ** (batch.attempt_count - 1)
            wait_ms = min(wait_ms, batch.max_retry_interval_ms)
            batch.next_retry_ms = _now_ms() + wait_ms
            self.logger.debug("Submit to the retry queue after meeting the retry criteria")
            self.retry_queue.push(batch)
        else:
            self._fail(batch)

    def _record_error(self, batch: ProducerBatch, err: Exception, retrying: bool, begin_ms: int) -> None:
        if batch.attempt_count < batch.max_reserved_attempts:
            request_id, code, message = _error_details(err)
            if retrying:
                self.logger.info(
                    "sendToServer failed,start retrying",
                    extra={
                        "fields": {
                            "retry times": batch.attempt_count,
                            "requestId": request_id,
                            "error code": code,
                            "error message": message,
                        }
                    },
                )
            now_ms = _now_ms()
            batch.result.attempts.append(
                Attempt(False, request_id, code, message, now_ms, now_ms - begin_ms)
            )
        batch.result.successful = False
        batch.attempt_count += 1

    def _fail(self, batch: ProducerBatch) -> None:
        self.logger.info("sendToServer failed,Execute failed callback function")
        self.producer.adjust_log_group_size(-batch.total_data_size)
        for callback in batch.callbacks:
            callback.fail(batch.result)

    def start_send_task(self) -> None:
        """Reserve a sending slot, blocking while all slots are busy."""
        with self._count_lock:
            self._task_count += 1
        self._slots.acquire()

    def close_send_task(self) -> None:
        """Release a slot reserved by start_send_task."""
        self._slots.release()
        with self._count_lock:
            self._task_count -= 1