"""Retry policy with exponential backoff for Omnisync.

Provides the attempt ceiling, backoff schedule and transient-fault
classification used by the Sentinel.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Callable

import httpx

from omnisync.utils.errors import OmnisyncError

logger = logging.getLogger(__name__)

# Exception types treated as transient even without an ``OmnisyncError.retryable`` flag
TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    OSError,
    httpx.TransportError,
)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts, including the first one
        base_delay: Delay before the first retry (seconds)
        max_delay: Upper bound of any single delay (seconds)
        exponential_base: Exponential backoff multiplier
        jitter: Add random jitter to prevent thundering herd
        jitter_max: Max jitter as fraction of delay
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_max: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")


@dataclass
class RetryContext:
    """State of one retry sequence."""

    config: RetryConfig = field(default_factory=RetryConfig)
    attempt: int = 0
    total_delay: float = 0.0
    last_error: BaseException | None = None
    rng: Callable[[float, float], float] = random.uniform

    @property
    def exhausted(self) -> bool:
        return self.attempt + 1 >= self.config.max_attempts

    def calculate_delay(self) -> float:
        """Delay before the attempt following ``self.attempt``."""
        delay = min(
            self.config.base_delay * (self.config.exponential_base ** self.attempt),
            self.config.max_delay,
        )

        if self.config.jitter and delay > 0:
            jitter_amount = delay * self.config.jitter_max
            delay += self.rng(-jitter_amount, jitter_amount)

        return min(max(0.0, delay), self.config.max_delay)


def is_transient(error: BaseException) -> bool:
    """Check if an exception is a transient (retry-eligible) fault."""
    if isinstance(error, OmnisyncError):
        return error.retryable
    return isinstance(error, TRANSIENT_EXCEPTIONS)
