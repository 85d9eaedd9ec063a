"""Settings of the batching log producer."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

DELIMITER = "|"

TokenUpdater = Callable[[], Tuple[str, str, str, datetime]]


@dataclass
class ProducerConfig:
    """Producer settings; zero values are corrected when the producer starts."""

    total_size_in_bytes: int = 0
    max_io_worker_count: int = 0
    max_block_sec: int = 0
    max_batch_size: int = 0
    max_batch_count: int = 0
    linger_ms: int = 0
    retries: int = 0
    max_reserved_attempts: int = 0
    base_retry_backoff_ms: int = 0
    max_retry_backoff_ms: int = 0
    adjust_shard_hash: bool = False
    buckets: int = 0
    allow_log_level: str = ""
    log_file_name: str = ""
    is_json_type: bool = False
    log_max_size: int = 0
    log_max_backups: int = 0
    log_compress: bool = False
    endpoint: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""
    no_retry_status_codes: list[int] = field(default_factory=list)
    update_sts_token: Optional[TokenUpdater] = None
    sts_token_shutdown: Optional[threading.Event] = None
    http_client: Any = None
    user_agent: str = ""


def default_producer_config() -> ProducerConfig:
    """Return a configuration filled with the recommended defaults."""
    return ProducerConfig(
        total_size_in_bytes=100 * 1024 * 1024,
        max_io_worker_count=50,
        max_block_sec=60,
        max_batch_size=512 * 1024,
        linger_ms=2000,
        retries=10,
        max_reserved_attempts=11,
        base_retry_backoff_ms=100,
        max_retry_backoff_ms=50 * 1000,
        adjust_shard_hash=True,
        buckets=64,
        max_batch_count=4096,
        no_retry_status_codes=[400, 404],
    )