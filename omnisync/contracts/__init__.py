"""Contracts: record models and the validation boundary."""

from omnisync.contracts.models import (
    BridgeConfiguration,
    ErrorReport,
    HealthReport,
    HealthStatus,
    HeartbeatRecord,
    Severity,
    TelemetryEntry,
    TelemetryLevel,
    UrgencyLevel,
    UrgencyReport,
)
from omnisync.contracts.validation import validate

__all__ = [
    "BridgeConfiguration",
    "ErrorReport",
    "HealthReport",
    "HealthStatus",
    "HeartbeatRecord",
    "Severity",
    "TelemetryEntry",
    "TelemetryLevel",
    "UrgencyLevel",
    "UrgencyReport",
    "validate",
]
