"""Log records and log groups, with the sizes used for batching."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

_NANOS_PER_MS = 1_000_000


def _varint_size(value: int) -> int:
    size = 1
    while value >= 0x80:
        value >>= 7
        size += 1
    return size


def _embedded_size(payload: int) -> int:
    """Wire size of a length-delimited field with a one-byte tag."""
    return 1 + _varint_size(payload) + payload


def _text_size(text: str) -> int:
    return _embedded_size(len(text.encode("utf-8")))


@dataclass
class LogContent:
    key: str
    value: str

    def _wire_size(self) -> int:
        return _text_size(self.key) + _text_size(self.value)


@dataclass
class Log:
    time: Optional[int] = None
    contents: list[LogContent] = field(default_factory=list)

    def _wire_size(self) -> int:
        size = 0 if self.time is None else 1 + _varint_size(self.time)
        return size + sum(_embedded_size(item._wire_size()) for item in self.contents)


@dataclass
class LogGroup:
    logs: list[Log] = field(default_factory=list)
    topic: Optional[str] = None
    source: Optional[str] = None

    def size(self) -> int:
        """Size in bytes of the encoded log group."""
        size = sum(_embedded_size(log._wire_size()) for log in self.logs)
        for text in (self.topic, self.source):
            if text is not None:
                size += _text_size(text)
        return size


def generate_log(log_time: int, contents: Mapping[str, str]) -> Log:
    """Build a log with the given time and key/value contents."""
    return Log(
        time=log_time,
        contents=[LogContent(key, value) for key, value in contents.items()],
    )


def get_time_ms(t: int) -> int:
    """Convert nanoseconds to milliseconds, truncating toward zero."""
    millis = abs(t) // _NANOS_PER_MS
    return -millis if t < 0 else millis


def get_log_size(log: Log) -> int:
    """Approximate size of a log: 4 bytes plus its keys and values."""
    return 4 + sum(
        len(item.key.encode("utf-8")) + len(item.value.encode("utf-8")) for item in log.contents
    )


def get_log_list_size(logs: Iterable[Log]) -> int:
    return sum(get_log_size(log) for log in logs)