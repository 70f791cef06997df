"""Execution tracing and structured telemetry for Omnisync.

The TraceRecorder wraps operations to measure their latency and outcome,
and emits every entry through a single validating ``emit`` step. It only
observes: failures of the traced work are always re-raised unchanged, and
failures of the telemetry layer itself never escape it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import time
import traceback
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol, TypeVar

from omnisync.contracts.models import TelemetryEntry, TelemetryLevel
from omnisync.contracts.validation import validate
from omnisync.observability.correlation import get_trace_id
from omnisync.utils.errors import SchemaViolationError

logger = logging.getLogger(__name__)
T = TypeVar("T")

SUCCESS_KEY = "core.telemetry.execution.success"
FAILURE_KEY = "core.telemetry.execution.failure"

DiagnosticWriter = Callable[[str], None]


def write_raw_diagnostic(line: str) -> None:
    """Last-resort channel: write straight to stderr, bypassing logging."""
    with contextlib.suppress(OSError, ValueError):
        sys.stderr.write(line + "\n")
        sys.stderr.flush()


def format_entry(entry: TelemetryEntry) -> str:
    """Render an entry as one log line."""
    line = (
        f"[{entry.timestamp.isoformat()}] [{entry.level.value}] "
        f"[{entry.apparatus} >> {entry.operation}]: {entry.message_key}"
    )
    if entry.duration_ms is not None:
        line += f" ({entry.duration_ms:.4f}ms)"
    return line


class TelemetrySink(Protocol):
    """Destination for validated telemetry entries."""

    def write(self, entry: TelemetryEntry) -> None: ...


class LoggingSink:
    """Writes entries to the standard logging tree."""

    LEVELS = {
        TelemetryLevel.ERROR: logging.ERROR,
        TelemetryLevel.WARNING: logging.WARNING,
        TelemetryLevel.VERBOSE: logging.DEBUG,
        TelemetryLevel.INFORMATION: logging.INFO,
        TelemetryLevel.PERFORMANCE: logging.INFO,
    }

    def __init__(self, logger_name: str = "omnisync.telemetry"):
        self.logger = logging.getLogger(logger_name)

    def write(self, entry: TelemetryEntry) -> None:
        level = self.LEVELS[entry.level]
        line = format_entry(entry)
        if entry.metadata and entry.level in (TelemetryLevel.ERROR, TelemetryLevel.VERBOSE):
            line = f"{line} {entry.metadata}"
        self.logger.log(
            level,
            line,
            extra={"telemetry": entry.model_dump()},
        )


class MemorySink:
    """Keeps entries in memory, newest last."""

    def __init__(self) -> None:
        self.entries: list[TelemetryEntry] = []

    def write(self, entry: TelemetryEntry) -> None:
        self.entries.append(entry)

    def by_level(self, level: TelemetryLevel) -> list[TelemetryEntry]:
        return [e for e in self.entries if e.level == level]

    def clear(self) -> None:
        self.entries.clear()


class TraceRecorder:
    """Formats and emits structured execution and log entries.

    Example:
        recorder = TraceRecorder()

        result = await recorder.trace_execution(
            "GeminiDriver", "generate", lambda: client.generate(prompt),
            {"model": "gemini-pro"},
        )

        recorder.verbose("GeminiDriver", "ignition", "driver.ready")
    """

    def __init__(
        self,
        sinks: Iterable[TelemetrySink] | None = None,
        verbose_enabled: bool = True,
        diagnostic: DiagnosticWriter | None = None,
    ):
        self._sinks: list[TelemetrySink] = list(sinks) if sinks is not None else [LoggingSink()]
        self.verbose_enabled = verbose_enabled
        self._diagnostic = diagnostic or write_raw_diagnostic

    def add_sink(self, sink: TelemetrySink) -> None:
        self._sinks.append(sink)

    async def trace_execution(
        self,
        apparatus: str,
        operation: str,
        work: Callable[[], Awaitable[T]],
        metadata: Mapping[str, Any] | None = None,
    ) -> T:
        """Run ``work`` and emit one PERFORMANCE or ERROR entry.

        Args:
            apparatus: Originating component
            operation: Operation name
            work: Zero-argument coroutine function
            metadata: Extra context merged into the entry

        Returns:
            The result of ``work``, unchanged

        Raises:
            Whatever ``work`` raised, unchanged
        """
        start = time.perf_counter()
        try:
            result = await work()
        except (Exception, asyncio.CancelledError) as e:
            self._emit_failure(apparatus, operation, start, e, metadata)
            raise
        self._emit_success(apparatus, operation, start, metadata)
        return result

    def trace_execution_sync(
        self,
        apparatus: str,
        operation: str,
        work: Callable[[], T],
        metadata: Mapping[str, Any] | None = None,
    ) -> T:
        """Synchronous counterpart of trace_execution."""
        start = time.perf_counter()
        try:
            result = work()
        except Exception as e:
            self._emit_failure(apparatus, operation, start, e, metadata)
            raise
        self._emit_success(apparatus, operation, start, metadata)
        return result

    def verbose(
        self,
        apparatus: str,
        operation: str,
        message_key: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> TelemetryEntry | None:
        """Emit a VERBOSE entry unless verbosity is disabled."""
        if not self.verbose_enabled:
            return None
        return self.log(TelemetryLevel.VERBOSE, apparatus, operation, message_key, metadata)

    def information(
        self,
        apparatus: str,
        operation: str,
        message_key: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> TelemetryEntry | None:
        return self.log(TelemetryLevel.INFORMATION, apparatus, operation, message_key, metadata)

    def warning(
        self,
        apparatus: str,
        operation: str,
        message_key: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> TelemetryEntry | None:
        return self.log(TelemetryLevel.WARNING, apparatus, operation, message_key, metadata)

    def error(
        self,
        apparatus: str,
        operation: str,
        message_key: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> TelemetryEntry | None:
        return self.log(TelemetryLevel.ERROR, apparatus, operation, message_key, metadata)

    def log(
        self,
        level: TelemetryLevel,
        apparatus: str,
        operation: str,
        message_key: str,
        metadata: Mapping[str, Any] | None = None,
        duration_ms: float | None = None,
        *,
        extra: Mapping[str, Any] | None = None,
    ) -> TelemetryEntry | None:
        try:
            merged = {**metadata} if metadata is not None else None
            if extra:
                merged = {**(merged or {}), **extra}
        except TypeError as e:
            self._diagnostic(
                f"[CRITICAL] Telemetry metadata for {apparatus} >> {operation} is not a mapping: "
                f"{type(metadata).__name__}: {e}"
            )
            return None

        entry: dict[str, Any] = {
            "apparatus": apparatus,
            "operation": operation,
            "level": level,
            "message_key": message_key,
            "metadata": merged,
            "trace_id": get_trace_id(),
        }
        if duration_ms is not None:
            entry["duration_ms"] = duration_ms
        return self.emit(entry)

    def emit(self, entry: TelemetryEntry | Mapping[str, Any]) -> TelemetryEntry | None:
        """Validate an entry and hand it to every sink.

        Never raises: a shape violation or a failing sink is written to the
        raw diagnostic channel instead.

        Returns:
            The validated entry, or None if it was rejected
        """
        try:
            validated = validate(TelemetryEntry, entry, "TraceRecorder.emit")
        except SchemaViolationError as e:
            self._diagnostic(f"[CRITICAL] Telemetry schema violation: {e}")
            return None

        for sink in self._sinks:
            try:
                sink.write(validated)
            except Exception as e:
                self._diagnostic(
                    f"[CRITICAL] Telemetry sink {type(sink).__name__} failed: "
                    f"{type(e).__name__}: {e}"
                )
        return validated

    def _emit_success(
        self,
        apparatus: str,
        operation: str,
        start: float,
        metadata: Mapping[str, Any] | None,
    ) -> None:
        self.log(
            TelemetryLevel.PERFORMANCE,
            apparatus,
            operation,
            SUCCESS_KEY,
            metadata,
            duration_ms=_elapsed_ms(start),
            extra={"status": "COMPLETED"},
        )

    def _emit_failure(
        self,
        apparatus: str,
        operation: str,
        start: float,
        error: BaseException,
        metadata: Mapping[str, Any] | None,
    ) -> None:
        self.log(
            TelemetryLevel.ERROR,
            apparatus,
            operation,
            FAILURE_KEY,
            metadata,
            duration_ms=_elapsed_ms(start),
            extra={
                "status": "FAILED",
                "error_message": str(error),
                "error_type": type(error).__name__,
                "error_trace": "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
            },
        )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 4)
