from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class RetryStrategy(Protocol):
    """Retry policy for a task whose attempt failed or timed out.

    `previous_attempts` is the number of failures/timeouts already recorded.
    Bounded strategies must keep returning False once the limit is reached.
    """

    def should_retry(self, previous_attempts: int) -> bool: ...

    def get_backoff_time(self, previous_attempts: int) -> float: ...


@dataclass(frozen=True, slots=True)
class NoRetry:
    def should_retry(self, previous_attempts: int) -> bool:
        return False

    def get_backoff_time(self, previous_attempts: int) -> float:
        return 0


@dataclass(frozen=True, slots=True)
class Immediate:
    retry_limit: int

    def should_retry(self, previous_attempts: int) -> bool:
        return previous_attempts < self.retry_limit

    def get_backoff_time(self, previous_attempts: int) -> float:
        return 0


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    backoff: float
    retry_limit: int

    def should_retry(self, previous_attempts: int) -> bool:
        return previous_attempts < self.retry_limit

    def get_backoff_time(self, previous_attempts: int) -> float:
        return self.backoff


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    start_at: float
    retry_limit: int

    def should_retry(self, previous_attempts: int) -> bool:
        return previous_attempts < self.retry_limit

    def get_backoff_time(self, previous_attempts: int) -> float:
        return self.start_at * 2**previous_attempts
