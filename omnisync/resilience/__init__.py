"""Resilience package for Omnisync.

Provides retry with backoff, per-operation circuit breaking, failure
reporting through the Sentinel and infrastructure health probes.
"""

from omnisync.resilience.circuit import (
    CircuitBreakerConfig,
    CircuitKey,
    CircuitState,
    CircuitStatus,
    CircuitStore,
)
from omnisync.resilience.health_checks import (
    CallableProbe,
    HealthOrchestrator,
    HeartbeatProbe,
    ProbeKind,
    RelationalPersistenceProbe,
    SqliteLivenessQuery,
    VectorDatabaseProbe,
    VolatileMemoryProbe,
)
from omnisync.resilience.retry import RetryConfig, RetryContext, is_transient
from omnisync.resilience.sentinel import Sentinel

__all__ = [
    "CallableProbe",
    "CircuitBreakerConfig",
    "CircuitKey",
    "CircuitState",
    "CircuitStatus",
    "CircuitStore",
    "HealthOrchestrator",
    "HeartbeatProbe",
    "ProbeKind",
    "RelationalPersistenceProbe",
    "RetryConfig",
    "RetryContext",
    "Sentinel",
    "SqliteLivenessQuery",
    "VectorDatabaseProbe",
    "VolatileMemoryProbe",
    "is_transient",
]
