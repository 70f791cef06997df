"""Omnisync Core - resilience and observability for the Omnisync platform."""

__version__ = "1.0.0"

from omnisync.bridge import NexusClient, RequestBridge
from omnisync.contracts import ErrorReport, HealthReport, HealthStatus, Severity
from omnisync.observability import TraceRecorder
from omnisync.resilience import HealthOrchestrator, RetryConfig, Sentinel
from omnisync.triage import analyze_text_urgency

__all__ = [
    "__version__",
    "ErrorReport",
    "HealthOrchestrator",
    "HealthReport",
    "HealthStatus",
    "NexusClient",
    "RequestBridge",
    "RetryConfig",
    "Sentinel",
    "Severity",
    "TraceRecorder",
    "analyze_text_urgency",
]
