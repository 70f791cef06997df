"""Sentinel: retry, circuit breaking and failure reporting.

The Sentinel is the only component allowed to retry. It runs an
operation under a retry policy, keeps one circuit per
(apparatus, operation) key, and turns final failures into ErrorReports
emitted through the TraceRecorder.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
import time
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

from omnisync.config.config import Config
from omnisync.contracts.models import ErrorReport, Severity
from omnisync.contracts.validation import validate
from omnisync.observability.telemetry import DiagnosticWriter, TraceRecorder, write_raw_diagnostic
from omnisync.resilience.circuit import (
    CircuitBreakerConfig,
    CircuitKey,
    CircuitState,
    CircuitStatus,
    CircuitStore,
)
from omnisync.resilience.retry import RetryConfig, RetryContext, is_transient
from omnisync.utils.errors import CircuitOpenError, SchemaViolationError

logger = logging.getLogger(__name__)
T = TypeVar("T")

AlertHandler = Callable[[ErrorReport], None]

EXECUTION_FAILURE_CODE = "OS-CORE-001"
CIRCUIT_OPEN_CODE = "OS-CORE-429"


class Sentinel:
    """Resilience engine.

    Example:
        sentinel = Sentinel(recorder=TraceRecorder())

        reply = await sentinel.execute_with_resilience(
            lambda: client.post("/v1/neural/chat", json=payload),
            "GeminiDriver",
            "generate",
        )

        # Or as a decorator
        @sentinel.protect("OdooAdapter", "fetch_invoice")
        async def fetch_invoice(invoice_id):
            ...
    """

    APPARATUS = "Sentinel"

    def __init__(
        self,
        recorder: TraceRecorder | None = None,
        retry_config: RetryConfig | None = None,
        circuit_config: CircuitBreakerConfig | None = None,
        store: CircuitStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[float, float], float] = random.uniform,
        alert_handlers: Iterable[AlertHandler] | None = None,
        diagnostic: DiagnosticWriter | None = None,
    ):
        self.recorder = recorder or TraceRecorder()
        self.retry_config = retry_config or RetryConfig()
        self.circuit_config = circuit_config or CircuitBreakerConfig()
        self._store = store if store is not None else CircuitStore()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng
        self._alert_handlers: list[AlertHandler] = list(alert_handlers or [])
        self._diagnostic = diagnostic or write_raw_diagnostic

    @classmethod
    def from_config(cls, config: Config, recorder: TraceRecorder | None = None) -> Sentinel:
        """Build a Sentinel from process configuration."""
        return cls(
            recorder=recorder,
            retry_config=RetryConfig(
                max_attempts=config.retry_max_attempts,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
            ),
            circuit_config=CircuitBreakerConfig(
                failure_threshold=config.circuit_threshold,
                cooldown=config.circuit_cooldown,
            ),
        )

    @property
    def store(self) -> CircuitStore:
        return self._store

    def add_alert_handler(self, handler: AlertHandler) -> None:
        self._alert_handlers.append(handler)

    def circuit_state(self, apparatus: str, operation: str) -> CircuitState | None:
        """Snapshot of one circuit, or None if it was never used."""
        state = self._store.get(CircuitKey(apparatus, operation))
        return state.snapshot() if state else None

    def reset_circuit(self, apparatus: str, operation: str) -> None:
        self._store.reset(CircuitKey(apparatus, operation))

    async def execute_with_resilience(
        self,
        operation: Callable[[], Awaitable[T]],
        apparatus: str,
        operation_name: str,
        policy: RetryConfig | None = None,
    ) -> T:
        """Run ``operation`` with retries and circuit breaking.

        Args:
            operation: Zero-argument coroutine function
            apparatus: Originating component
            operation_name: Operation name, second half of the circuit key
            policy: Retry policy overriding the Sentinel default

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: If the circuit is open (operation not invoked)
            Exception: The final error of the operation, unchanged
        """
        key = CircuitKey(apparatus, operation_name)
        state = self._store.get_or_create(key)

        if not state.admit(self._clock()):
            raise self._reject(key, state)
        is_probe = state.status == CircuitStatus.HALF_OPEN

        ctx = RetryContext(config=policy or self.retry_config, rng=self._rng)
        try:
            while True:
                try:
                    result = await operation()
                except Exception as e:
                    ctx.last_error = e
                    transient = is_transient(e)
                    if transient and not ctx.exhausted:
                        await self._backoff(key, ctx, e)
                        continue
                    self._record_failure(key, state, e, transient, ctx.attempt + 1)
                    raise
                state.record_success()
                return result
        finally:
            if is_probe:
                state.release_probe()

    def protect(
        self,
        apparatus: str,
        operation_name: str,
        policy: RetryConfig | None = None,
    ) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
        """Decorator applying execute_with_resilience to an async function."""

        def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            @functools.wraps(fn)
            async def wrapper(*args: Any, **kwargs: Any) -> T:
                return await self.execute_with_resilience(
                    lambda: fn(*args, **kwargs), apparatus, operation_name, policy
                )

            return wrapper

        return decorator

    def report(self, entry: ErrorReport | Mapping[str, Any]) -> bool:
        """Validate, log and dispatch an error report.

        Never raises and never terminates the process.

        Returns:
            True if the failure is terminal (CRITICAL and unrecoverable);
            the caller owns any shutdown decision.
        """
        try:
            report = validate(ErrorReport, entry, "Sentinel.report")
        except SchemaViolationError as e:
            self._diagnostic(f"[SENTINEL-INTERNAL-FAILURE] Report schema is invalid: {e}")
            return _looks_terminal(entry)

        metadata = {
            "error_code": report.error_code,
            "severity": report.severity.value,
            "is_recoverable": report.is_recoverable,
            "context": report.context,
        }
        if report.tenant_id:
            metadata["tenant_id"] = report.tenant_id

        try:
            if report.severity in (Severity.HIGH, Severity.CRITICAL):
                self.recorder.error(report.apparatus, report.operation, report.message, metadata)
                self._dispatch_alert(report)
            else:
                self.recorder.warning(report.apparatus, report.operation, report.message, metadata)

            state = self._store.get(CircuitKey(report.apparatus, report.operation))
            if state is not None:
                state.last_error_code = report.error_code
        except Exception as e:
            self._diagnostic(
                f"[SENTINEL-INTERNAL-FAILURE] Could not record {report.error_code}: "
                f"{type(e).__name__}: {e}"
            )

        return report.is_terminal

    async def _backoff(self, key: CircuitKey, ctx: RetryContext, error: Exception) -> None:
        delay = ctx.calculate_delay()
        ctx.total_delay += delay
        logger.info(
            f"Retry {ctx.attempt + 1}/{ctx.config.max_attempts - 1} for {key} after "
            f"{delay:.2f}s delay: {type(error).__name__}: {error}"
        )
        self.recorder.verbose(
            self.APPARATUS,
            "retry",
            "core.sentinel.retry_scheduled",
            {
                "circuit": str(key),
                "attempt": ctx.attempt + 1,
                "delay_seconds": round(delay, 4),
                "error_type": type(error).__name__,
            },
        )
        ctx.attempt += 1
        await self._sleep(delay)

    def _reject(self, key: CircuitKey, state: CircuitState) -> CircuitOpenError:
        remaining = state.remaining_cooldown(self._clock())
        error = CircuitOpenError(
            message=f"Circuit open for {key}",
            apparatus=key.apparatus,
            operation=key.operation,
            failure_count=state.failure_count,
            retry_after_seconds=remaining,
        )
        self.report(
            {
                "error_code": CIRCUIT_OPEN_CODE,
                "severity": Severity.LOW,
                "apparatus": key.apparatus,
                "operation": key.operation,
                "message": "core.sentinel.circuit_open",
                "context": error.details,
            }
        )
        return error

    def _record_failure(
        self,
        key: CircuitKey,
        state: CircuitState,
        error: Exception,
        transient: bool,
        attempts: int,
    ) -> None:
        opened = state.record_failure(self._clock(), self.circuit_config)
        if opened:
            logger.warning(
                f"Circuit {key} opened after {state.failure_count} consecutive failures"
            )
            self.recorder.warning(
                self.APPARATUS,
                "circuit",
                "core.sentinel.circuit_opened",
                {
                    "circuit": str(key),
                    "failure_count": state.failure_count,
                    "cooldown_seconds": self.circuit_config.cooldown,
                },
            )

        self.report(
            {
                "error_code": EXECUTION_FAILURE_CODE,
                "severity": Severity.MEDIUM if transient else Severity.HIGH,
                "apparatus": key.apparatus,
                "operation": key.operation,
                "message": f"Operation failed after {attempts} attempt(s)",
                "context": {
                    "error": str(error),
                    "error_type": type(error).__name__,
                    "attempts": attempts,
                    "transient": transient,
                    "circuit_status": state.status.value,
                    "failure_count": state.failure_count,
                },
                "is_recoverable": transient,
            }
        )

    def _dispatch_alert(self, report: ErrorReport) -> None:
        for handler in self._alert_handlers:
            try:
                handler(report)
            except Exception as e:
                self._diagnostic(
                    f"[SENTINEL-INTERNAL-FAILURE] Alert handler failed for "
                    f"{report.error_code}: {type(e).__name__}: {e}"
                )


def _looks_terminal(entry: Any) -> bool:
    """Best-effort terminal check on a report that failed validation."""
    if isinstance(entry, Mapping):
        severity = entry.get("severity")
        if isinstance(severity, Severity):
            severity = severity.value
        return severity == "CRITICAL" and entry.get("is_recoverable", True) is False
    return False
