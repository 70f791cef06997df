"""Observability package for Omnisync.

Provides execution tracing, structured telemetry entries and trace ID
propagation.
"""

from omnisync.observability.correlation import (
    generate_trace_id,
    get_trace_id,
    reset_trace_id,
    set_trace_id,
)
from omnisync.observability.telemetry import (
    LoggingSink,
    MemorySink,
    TelemetrySink,
    TraceRecorder,
)

__all__ = [
    "LoggingSink",
    "MemorySink",
    "TelemetrySink",
    "TraceRecorder",
    "generate_trace_id",
    "get_trace_id",
    "reset_trace_id",
    "set_trace_id",
]
