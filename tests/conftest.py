"""Shared fixtures for the Omnisync test suite."""

import pytest

from omnisync.config.loader import reset_config_cache
from omnisync.observability.telemetry import MemorySink, TraceRecorder
from omnisync.resilience.circuit import CircuitBreakerConfig
from omnisync.resilience.retry import RetryConfig
from omnisync.resilience.sentinel import Sentinel


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def diagnostics():
    return []


@pytest.fixture
def recorder(sink, diagnostics):
    return TraceRecorder(sinks=[sink], diagnostic=diagnostics.append)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def sentinel(recorder, clock, sleeps, diagnostics):
    async def record_sleep(delay):
        sleeps.append(delay)

    return Sentinel(
        recorder=recorder,
        retry_config=RetryConfig(max_attempts=3, base_delay=0.01, max_delay=0.1, jitter=False),
        circuit_config=CircuitBreakerConfig(failure_threshold=5, cooldown=30.0),
        clock=clock,
        sleep=record_sleep,
        diagnostic=diagnostics.append,
    )
