"""Error hierarchy for Omnisync.

Every failure raised by the core carries a machine-readable code, a
retryable flag used by the Sentinel to tell transient faults from fatal
ones, structured details and a short trace ID.
"""

from __future__ import annotations

import uuid
from typing import Any


class OmnisyncError(Exception):
    """Base exception for all Omnisync errors.

    Features:
    - Machine-readable error codes
    - Human-readable messages
    - Structured context (details dict)
    - Retryable flag for automatic retry decisions
    - Trace ID for correlating reports and telemetry

    Example:
        raise UpstreamStatusError(
            message="Hub answered 502",
            status_code=502,
            endpoint="/v1/neural/chat",
        )
    """

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        trace_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.retryable = retryable
        self.trace_id = trace_id or str(uuid.uuid4())[:8]
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        if self.cause:
            parts.append(f"[caused by: {self.cause}]")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code!r}, "
            f"message={self.message!r}, "
            f"retryable={self.retryable}, "
            f"trace_id={self.trace_id!r}"
            f")"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
            "trace_id": self.trace_id,
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Fatal Faults (never retried)
# =============================================================================


class ConfigError(OmnisyncError):
    """Missing or malformed configuration."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(
            message=message,
            code="CONFIG_ERROR",
            details=details,
            retryable=False,
            **kwargs,
        )
        self.config_key = config_key


class SchemaViolationError(OmnisyncError):
    """A value did not satisfy its contract.

    ``field_paths`` lists the dotted paths of every violating field, e.g.
    ``["components.sql.latency_ms"]``.
    """

    def __init__(
        self,
        message: str,
        context: str | None = None,
        field_paths: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if context:
            details["context"] = context
        details["field_paths"] = list(field_paths or [])
        super().__init__(
            message=message,
            code="SCHEMA_VIOLATION",
            details=details,
            retryable=False,
            **kwargs,
        )
        self.context = context
        self.field_paths = list(field_paths or [])


class InvalidInputError(OmnisyncError):
    """Caller supplied arguments of the wrong shape."""

    def __init__(
        self,
        message: str,
        argument: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if argument:
            details["argument"] = argument
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            details=details,
            retryable=False,
            **kwargs,
        )
        self.argument = argument


# =============================================================================
# Circuit Breaker & Timeout Errors
# =============================================================================


class CircuitOpenError(OmnisyncError):
    """Raised locally while a circuit is open; the downstream is not called."""

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        apparatus: str | None = None,
        operation: str | None = None,
        failure_count: int | None = None,
        retry_after_seconds: float | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if apparatus:
            details["apparatus"] = apparatus
        if operation:
            details["operation"] = operation
        if failure_count is not None:
            details["failure_count"] = failure_count
        if retry_after_seconds is not None:
            details["retry_after_seconds"] = round(retry_after_seconds, 3)
        super().__init__(
            message=message, code="CIRCUIT_OPEN", details=details, retryable=False, **kwargs
        )
        self.apparatus = apparatus
        self.operation = operation
        self.failure_count = failure_count
        self.retry_after_seconds = retry_after_seconds


class RequestTimeoutError(OmnisyncError):
    """Operation ran out of its time budget."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if operation:
            details["operation"] = operation
        if timeout is not None:
            details["timeout_seconds"] = timeout
        kwargs.setdefault("retryable", True)
        super().__init__(message=message, code="TIMEOUT", details=details, **kwargs)
        self.operation = operation
        self.timeout = timeout


# =============================================================================
# Dependency & Network Errors (transient unless stated otherwise)
# =============================================================================


class DependencyError(OmnisyncError):
    """External dependency failures."""

    def __init__(
        self,
        message: str,
        dependency: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if dependency:
            details["dependency"] = dependency
        kwargs.setdefault("retryable", True)
        super().__init__(message=message, code="DEPENDENCY_ERROR", details=details, **kwargs)
        self.dependency = dependency


class ConnectionError(OmnisyncError):
    """Network connection failures."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if host:
            details["host"] = host
        super().__init__(
            message=message, code="CONNECTION_ERROR", details=details, retryable=True, **kwargs
        )
        self.host = host


class UpstreamStatusError(OmnisyncError):
    """Upstream answered with a non-success HTTP status.

    Server errors and 429 are retryable; any other client error is fatal.
    """

    def __init__(
        self,
        status_code: int,
        endpoint: str | None = None,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        super().__init__(
            message=message or f"bridge.status_error.{status_code}",
            code="UPSTREAM_STATUS",
            details=details,
            retryable=self.is_retryable_status(status_code),
            **kwargs,
        )
        self.status_code = status_code
        self.endpoint = endpoint

    @staticmethod
    def is_retryable_status(status_code: int) -> bool:
        """Return True for statuses worth another attempt."""
        if status_code == 429:
            return True
        return not 400 <= status_code < 500


__all__ = [
    "OmnisyncError",
    "ConfigError",
    "SchemaViolationError",
    "InvalidInputError",
    "CircuitOpenError",
    "RequestTimeoutError",
    "DependencyError",
    "ConnectionError",
    "UpstreamStatusError",
]
