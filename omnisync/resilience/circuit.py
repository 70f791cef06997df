"""Per-operation circuit breaker state.

One CircuitState exists per (apparatus, operation) key. It is created
on the first call through the Sentinel, reset to CLOSED on success and never
destroyed. Transitions:

    CLOSED    --threshold reached--> OPEN
    OPEN      --cool-down elapsed--> HALF_OPEN (one probe call admitted)
    HALF_OPEN --success-->           CLOSED
    HALF_OPEN --failure-->           OPEN (deadline extended)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class CircuitStatus(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitKey:
    """Address of one circuit."""

    apparatus: str
    operation: str

    def __str__(self) -> str:
        return f"{self.apparatus}::{self.operation}"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for circuit breaking.

    Attributes:
        failure_threshold: Consecutive failed calls that open the circuit
        cooldown: Seconds an open circuit rejects calls before a probe
    """

    failure_threshold: int = 5
    cooldown: float = 30.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.cooldown < 0:
            raise ValueError("cooldown must be >= 0")


@dataclass
class CircuitState:
    """Mutable bookkeeping of one circuit.

    Times are readings of the owning Sentinel's monotonic clock.
    """

    failure_count: int = 0
    status: CircuitStatus = CircuitStatus.CLOSED
    last_failure_at: float | None = None
    retry_after: float | None = None
    probe_in_flight: bool = False
    last_error_code: str | None = None

    def admit(self, now: float) -> bool:
        """Decide whether a call may proceed, moving OPEN to HALF_OPEN when due."""
        if self.status == CircuitStatus.CLOSED:
            return True
        if self.status == CircuitStatus.OPEN:
            if self.retry_after is not None and now < self.retry_after:
                return False
            self.status = CircuitStatus.HALF_OPEN
            self.probe_in_flight = True
            return True
        # HALF_OPEN: only the single probe goes through
        if self.probe_in_flight:
            return False
        self.probe_in_flight = True
        return True

    def record_success(self) -> None:
        self.failure_count = 0
        self.status = CircuitStatus.CLOSED
        self.retry_after = None
        self.probe_in_flight = False

    def record_failure(self, now: float, config: CircuitBreakerConfig) -> bool:
        """Count a failed call.

        Returns:
            True if this failure opened (or re-opened) the circuit
        """
        self.failure_count += 1
        self.last_failure_at = now
        self.probe_in_flight = False
        if self.status == CircuitStatus.HALF_OPEN or self.failure_count >= config.failure_threshold:
            self.status = CircuitStatus.OPEN
            self.retry_after = now + config.cooldown
            return True
        return False

    def release_probe(self) -> None:
        self.probe_in_flight = False

    def remaining_cooldown(self, now: float) -> float:
        if self.retry_after is None:
            return 0.0
        return max(0.0, self.retry_after - now)

    def snapshot(self) -> CircuitState:
        return dataclasses.replace(self)


class CircuitStore:
    """In-process store of circuit states, owned by one Sentinel."""

    def __init__(self) -> None:
        self._states: dict[CircuitKey, CircuitState] = {}

    def get(self, key: CircuitKey) -> CircuitState | None:
        return self._states.get(key)

    def get_or_create(self, key: CircuitKey) -> CircuitState:
        state = self._states.get(key)
        if state is None:
            state = self._states[key] = CircuitState()
        return state

    def reset(self, key: CircuitKey) -> None:
        self._states.pop(key, None)

    def clear(self) -> None:
        self._states.clear()

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[CircuitKey]:
        return iter(self._states)

    def to_dict(self) -> dict[str, dict]:
        """Convert circuit states to dictionary."""
        return {
            str(key): {
                "status": state.status.value,
                "failure_count": state.failure_count,
                "last_error_code": state.last_error_code,
            }
            for key, state in self._states.items()
        }
