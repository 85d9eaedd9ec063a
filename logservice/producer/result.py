"""Outcome of sending a batch, with the history of its attempts."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Attempt:
    """One delivery attempt of a batch."""

    success: bool
    request_id: str = ""
    error_code: str = ""
    error_message: str = ""
    timestamp_ms: int = 0
    last_attempt_cost_ms: int = 0


@dataclass
class Result:
    """Delivery result handed to callbacks; reports on the latest attempt."""

    attempts: list[Attempt] = field(default_factory=list)
    successful: bool = False

    def _last(self) -> Attempt | None:
        return self.attempts[-1] if self.attempts else None

    def error_code(self) -> str:
        last = self._last()
        return last.error_code if last else ""

    def error_message(self) -> str:
        last = self._last()
        return last.error_message if last else ""

    def request_id(self) -> str:
        last = self._last()
        return last.request_id if last else ""

    def timestamp_ms(self) -> int:
        last = self._last()
        return last.timestamp_ms if last else 0

    def last_attempt_cost_ms(self) -> int:
        last = self._last()
        return last.last_attempt_cost_ms if last else 0