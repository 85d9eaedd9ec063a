"""Queue of batches handed to the io worker for sending."""

from __future__ import annotations

import collections
import logging
import threading
import time
from typing import Optional

from logservice.producer.batch import ProducerBatch
from logservice.producer.io_worker import IoWorker


class IoThreadPool:
    """FIFO queue whose run loop sends each batch on its own thread."""

    def __init__(self, io_worker: IoWorker, logger: logging.Logger, poll_interval: float = 0.1) -> None:
        self.io_worker = io_worker
        self.logger = logger
        self.poll_interval = poll_interval
        self.shutdown = threading.Event()
        self._queue: collections.deque[ProducerBatch] = collections.deque()
        self._lock = threading.Lock()

    def add_task(self, batch: ProducerBatch) -> None:
        with self._lock:
            self._queue.append(batch)

    def pop_task(self) -> Optional[ProducerBatch]:
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def has_task(self) -> bool:
        with self._lock:
            return bool(self._queue)

    def _send(self, batch: ProducerBatch) -> None:
        try:
            self.io_worker.send_to_server(batch)
        finally:
            self.io_worker.close_send_task()

    def run(self) -> None:
        """Dispatch queued batches until the queue is empty and shutdown is set."""
        while True:
            task = self.pop_task()
            if task is not None:
                self.io_worker.start_send_task()
                threading.Thread(target=self._send, args=(task,), daemon=True).start()
            elif not self.shutdown.is_set():
                time.sleep(self.poll_interval)
            else:
                self.logger.info("All cache tasks in the thread pool have been successfully sent")
                break