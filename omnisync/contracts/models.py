"""Record contracts shared by every apparatus.

All records are immutable pydantic models: they are created once,
validated, emitted or returned, and never mutated afterwards.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ERROR_CODE_PATTERN = r"^OS-[A-Z]+-\d{3}$"


def _utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _check_uuid(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return str(uuid.UUID(str(value)))


class FrozenModel(BaseModel):
    """Base for immutable records."""

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Telemetry
# =============================================================================


class TelemetryLevel(str, Enum):
    """Severity and verbosity levels of a telemetry entry."""

    INFORMATION = "INFORMATION"
    WARNING = "WARNING"
    ERROR = "ERROR"
    PERFORMANCE = "PERFORMANCE"
    VERBOSE = "VERBOSE"


class TelemetryEntry(FrozenModel):
    """One structured execution or log entry."""

    timestamp: datetime = Field(default_factory=_utc_now, description="Emission time (UTC)")
    apparatus: str = Field(..., min_length=2, description="Originating component")
    operation: str = Field(..., min_length=2, description="Operation within the component")
    level: TelemetryLevel = Field(..., description="Entry level")
    message_key: str = Field(..., description="Stable message key")
    duration_ms: Optional[float] = Field(None, ge=0, description="Measured duration")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Free-form context")
    trace_id: Optional[str] = Field(None, description="Correlation identifier (UUID)")

    @field_validator("trace_id")
    @classmethod
    def check_trace_id(cls, value: Optional[str]) -> Optional[str]:
        return _check_uuid(value)


# =============================================================================
# Error reports
# =============================================================================


class Severity(str, Enum):
    """Severity of an error report."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorReport(FrozenModel):
    """Structured description of a failure, consumed by the Sentinel."""

    error_code: str = Field(..., pattern=ERROR_CODE_PATTERN, description="e.g. OS-CORE-503")
    severity: Severity = Field(..., description="Report severity")
    apparatus: str = Field(..., description="Originating component")
    operation: str = Field(..., description="Failed operation")
    message: str = Field(..., description="Human message or message key")
    context: Dict[str, Any] = Field(default_factory=dict, description="Structured context")
    is_recoverable: bool = Field(True, description="False when the failure is terminal")
    tenant_id: Optional[str] = Field(None, description="Tenant the failure belongs to")
    stack_trace: Optional[str] = Field(None, description="Formatted traceback")
    timestamp: datetime = Field(default_factory=_utc_now, description="Report time (UTC)")

    @field_validator("tenant_id")
    @classmethod
    def check_tenant_id(cls, value: Optional[str]) -> Optional[str]:
        return _check_uuid(value)

    @property
    def is_terminal(self) -> bool:
        """CRITICAL and unrecoverable: the owning process boundary should halt."""
        return self.severity == Severity.CRITICAL and not self.is_recoverable


# =============================================================================
# Health
# =============================================================================


class HealthStatus(str, Enum):
    """Operational status of one node or of the whole system."""

    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"
    UNREACHABLE = "UNREACHABLE"


class HeartbeatRecord(FrozenModel):
    """Result of a single probe invocation."""

    node_name: str = Field(..., min_length=2, description="Probed node, e.g. Qdrant/Cloud")
    status: HealthStatus = Field(..., description="Detected status")
    latency_ms: float = Field(..., ge=0, description="Handshake latency")
    last_check: datetime = Field(default_factory=_utc_now, description="Probe time (UTC)")
    error_message: Optional[str] = Field(None, description="Captured failure, if any")


class HealthReport(FrozenModel):
    """System-wide consolidation of every heartbeat."""

    report_id: str = Field(..., description="Report UUID")
    timestamp: datetime = Field(default_factory=_utc_now, description="Consolidation time")
    overall_status: HealthStatus = Field(..., description="Consolidated status")
    components: Dict[str, HeartbeatRecord] = Field(..., description="Records by component name")
    environment: str = Field(..., min_length=1, description="Execution environment")
    trace_id: Optional[str] = Field(None, description="Correlation identifier (UUID)")

    @field_validator("report_id", "trace_id")
    @classmethod
    def check_ids(cls, value: Optional[str]) -> Optional[str]:
        return _check_uuid(value)


# =============================================================================
# Urgency
# =============================================================================


class UrgencyLevel(str, Enum):
    """Priority derived from an urgency score."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class UrgencyReport(FrozenModel):
    """Outcome of a keyword triage."""

    is_urgent: bool = Field(..., description="True when score >= 25")
    score: int = Field(..., ge=0, le=100, description="0..100")
    level: UrgencyLevel = Field(..., description="Priority level")
    matched_keywords: List[str] = Field(default_factory=list, description="Distinct matches")


# =============================================================================
# Bridge
# =============================================================================


class BridgeConfiguration(FrozenModel):
    """Network parameters of the RequestBridge."""

    base_url: str = Field(..., description="Absolute http(s) URL of the hub")
    timeout_ms: int = Field(15000, gt=0, description="Time budget of one request")

    @field_validator("base_url")
    @classmethod
    def check_base_url(cls, value: str) -> str:
        value = value.strip()
        scheme, sep, rest = value.partition("://")
        if not sep or scheme.lower() not in ("http", "https") or not rest.strip("/"):
            raise ValueError("base_url must be an absolute http(s) URL")
        return value.rstrip("/")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0
