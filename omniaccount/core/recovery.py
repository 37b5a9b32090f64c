"""
Retry Strategy

Bounded exponential backoff for network-facing steps. Only
``RecoverableError`` is retried; everything else propagates on first raise.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Optional, TypeVar

from ..config import settings
from .errors import RecoverableError

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_attempts=settings.max_retries,
            initial_delay_seconds=settings.retry_initial_delay_seconds,
            max_delay_seconds=settings.retry_max_delay_seconds,
        )

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt number."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


class RetryStrategy:
    """
    Retries recoverable errors up to ``max_attempts`` times.

    Usage:
        strategy = RetryStrategy(RetryConfig(max_attempts=3))
        quote = await strategy.execute(lambda: client.request_quote(attempt), "quote")
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or RetryConfig.from_settings()
        self.logger = logger or logging.getLogger(__name__)

    async def execute(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
        operation_name: str = "operation",
    ) -> T:
        for attempt in range(self.config.max_attempts):
            try:
                return await operation()
            except RecoverableError as e:
                if not self.should_retry(e, attempt):
                    self.logger.error(
                        "%s failed after %d attempt(s): %s",
                        operation_name,
                        attempt + 1,
                        e,
                    )
                    raise

                delay = self._get_delay(e, attempt)
                self.logger.warning(
                    "%s attempt %d/%d failed: %s. Retrying in %.1fs",
                    operation_name,
                    attempt + 1,
                    self.config.max_attempts,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)

        # max_attempts < 1
        raise RuntimeError(f"{operation_name}: retry strategy allows no attempts")

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.config.max_attempts - 1:
            return False
        if isinstance(error, RecoverableError):
            return error.context.recoverable
        return False

    def _get_delay(self, error: Exception, attempt: int) -> float:
        if isinstance(error, RecoverableError) and error.retry_after:
            return min(error.retry_after, self.config.max_delay_seconds)
        return self.config.get_delay(attempt)
