"""Retrying operations with exponential backoff and an overall deadline."""

from __future__ import annotations

import random
import time
from typing import Any, Callable, Optional, Tuple

ConditionOperation = Callable[[], Tuple[bool, Optional[BaseException]]]


class RetryStopped(TimeoutError):
    """Raised when the overall deadline passes before the operation settles."""

    def __init__(self, last_error: BaseException | None = None) -> None:
        super().__init__(f"stopped retrying err: {last_error}: context deadline exceeded")
        self.last_error = last_error


class ExponentialBackOff:
    """Randomised exponential backoff; intervals are in seconds.

    Each call to next_backoff returns the current interval randomised by
    +/- randomization_factor, then grows it by multiplier up to max_interval.
    Once more than max_elapsed_time has passed since reset it returns None.
    """

    def __init__(
        self,
        *,
        initial_interval: float = 0.5,
        randomization_factor: float = 0.5,
        multiplier: float = 1.5,
        max_interval: float = 60.0,
        max_elapsed_time: float | None = 900.0,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.initial_interval = initial_interval
        self.randomization_factor = randomization_factor
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.max_elapsed_time = max_elapsed_time
        self._clock = clock
        self._rand = rand
        self.reset()

    def reset(self) -> None:
        self._current = self.initial_interval
        self._start = self._clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._start

    def next_backoff(self) -> float | None:
        if self.max_elapsed_time and self.elapsed > self.max_elapsed_time:
            return None
        delta = self.randomization_factor * self._current
        low = self._current - delta
        interval = low + self._rand() * (2 * delta)
        if self._current >= self.max_interval / self.multiplier:
            self._current = self.max_interval
        else:
            self._current *= self.multiplier
        return interval


def _deadline(timeout: float | None) -> float | None:
    return None if timeout is None else time.monotonic() + timeout


def _expired(deadline: float | None) -> bool:
    return deadline is not None and time.monotonic() >= deadline


def _wait(delay: float, deadline: float | None) -> bool:
    """Sleep for delay; return False if the deadline comes first."""
    if _expired(deadline):
        return False
    if deadline is not None:
        remaining = deadline - time.monotonic()
        if delay >= remaining:
            time.sleep(max(remaining, 0.0))
            return False
    if delay > 0:
        time.sleep(delay)
    return True


def retry(timeout: float | None, operation: Callable[[], Any]) -> Any:
    """Run operation until it returns, backing off exponentially on exceptions."""
    return retry_with_backoff(timeout, ExponentialBackOff(), operation)


def retry_with_backoff(
    timeout: float | None, backoff: ExponentialBackOff, operation: Callable[[], Any]
) -> Any:
    """Call operation until it returns without raising.

    Returns its result. Re-raises the last exception once the backoff gives up,
    and raises RetryStopped when the timeout passes first.
    """
    backoff.reset()
    deadline = _deadline(timeout)
    last_error: Exception | None = None
    delay = 0.0
    while True:
        if not _wait(delay, deadline):
            raise RetryStopped(last_error) from last_error
        try:
            return operation()
        except Exception as exc:
            last_error = exc
        next_delay = backoff.next_backoff()
        if next_delay is None:
            raise last_error
        delay = next_delay


def retry_with_condition(
    timeout: float | None, backoff: ExponentialBackOff, operation: ConditionOperation
) -> None:
    """Call operation, which returns (need_retry, error), until need_retry is false.

    The error of the final call is raised if there is one.
    """
    backoff.reset()
    deadline = _deadline(timeout)
    error: BaseException | None = None
    delay = 0.0
    while True:
        if not _wait(delay, deadline):
            raise RetryStopped(error) from error
        need_retry, error = operation()
        if not need_retry:
            break
        next_delay = backoff.next_backoff()
        if next_delay is None:
            break
        delay = next_delay
    if error is not None:
        raise error


def retry_with_attempt(
    timeout: float | None, max_attempt: int, operation: ConditionOperation
) -> None:
    """Like retry_with_condition, but with default backoff and at most max_attempt calls."""
    backoff = ExponentialBackOff()
    deadline = _deadline(timeout)
    error: BaseException | None = None
    delay = 0.0
    for _ in range(max_attempt):
        if _expired(deadline):
            raise RetryStopped(error) from error
        if delay > 0:
            time.sleep(delay)
        need_retry, error = operation()
        if not need_retry:
            break
        next_delay = backoff.next_backoff()
        if next_delay is None:
            break
        delay = next_delay
    if error is not None:
        raise error