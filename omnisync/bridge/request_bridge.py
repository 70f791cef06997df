"""Timeout-bounded outbound requests to the neural hub.

Every request runs inside a TraceRecorder execution trace, under a
CancellationToken carrying the whole time budget, with the Sentinel
owning retries and circuit breaking.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable

import httpx

from omnisync.bridge.cancellation import CancellationToken
from omnisync.config import Config, load_config
from omnisync.contracts.models import BridgeConfiguration, Severity
from omnisync.contracts.validation import validate
from omnisync.resilience.sentinel import Sentinel
from omnisync.utils.errors import (
    CircuitOpenError,
    InvalidInputError,
    RequestTimeoutError,
    UpstreamStatusError,
)

logger = logging.getLogger(__name__)

FRAMEWORK_VERSION = "OEDP-V3.0"
BRIDGE_FAILURE_CODE = "OS-CORE-503"
TIMEOUT_KEY = "core.bridge.error.timeout"
CONNECTIVITY_KEY = "core.bridge.error.connectivity_loss"

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


class RequestBridge:
    """Sends tenant-scoped JSON requests to the hub.

    Example:
        bridge = RequestBridge(sentinel)
        try:
            reply = await bridge.request("/v1/neural/chat", tenant_id, {"text": "hi"})
        finally:
            await bridge.aclose()
    """

    APPARATUS = "RequestBridge"

    def __init__(
        self,
        sentinel: Sentinel,
        client: httpx.AsyncClient | None = None,
        config_source: Callable[[], Config] = load_config,
        configuration: BridgeConfiguration | None = None,
    ):
        self.sentinel = sentinel
        self.recorder = sentinel.recorder
        self._client = client
        self._owns_client = client is None
        self._config_source = config_source
        self._configuration = configuration
        self._tokens: set[CancellationToken] = set()

    @property
    def configuration(self) -> BridgeConfiguration:
        """Network parameters, hydrated and validated on first access.

        Raises:
            SchemaViolationError: If the configured URL or timeout is invalid
        """
        if self._configuration is None:
            config = self._config_source()
            self._configuration = validate(
                BridgeConfiguration,
                {"base_url": config.api_url, "timeout_ms": config.api_timeout_ms},
                "RequestBridge.configuration",
            )
            logger.debug(
                f"Bridge configured for {self._configuration.base_url} "
                f"(timeout {self._configuration.timeout_ms}ms)"
            )
        return self._configuration

    @property
    def pending_timers(self) -> int:
        """Number of armed timeout timers; 0 when no request is in flight."""
        return sum(1 for token in self._tokens if token.armed)

    async def request(
        self,
        endpoint: str,
        tenant_id: str,
        payload: Any = None,
        method: str = "POST",
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Args:
            endpoint: Path on the hub, starting with "/"
            tenant_id: Tenant UUID sent as ``x-omnisync-tenant``
            payload: JSON-serializable body (ignored for GET)
            method: HTTP verb

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            InvalidInputError: Malformed endpoint, tenant or method
            SchemaViolationError: Invalid bridge configuration
            RequestTimeoutError: Time budget exhausted
            UpstreamStatusError: Hub answered with a non-2xx status
            CircuitOpenError: Circuit for this endpoint is open
        """
        method = _check_method(method)
        tenant = _check_tenant(tenant_id)
        if not isinstance(endpoint, str) or not endpoint.startswith("/"):
            raise InvalidInputError(f"Endpoint must be a path starting with '/': {endpoint!r}", argument="endpoint")

        operation = f"request:{method}:{endpoint}"
        return await self.recorder.trace_execution(
            self.APPARATUS,
            operation,
            lambda: self._dispatch(endpoint, tenant, payload, method, operation),
            {"endpoint": endpoint, "method": method, "tenant_id": tenant},
        )

    async def aclose(self) -> None:
        """Close the HTTP client if the bridge created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _dispatch(
        self,
        endpoint: str,
        tenant: str,
        payload: Any,
        method: str,
        operation: str,
    ) -> Any:
        configuration = self.configuration
        url = f"{configuration.base_url}{endpoint}"
        token = CancellationToken(configuration.timeout_seconds)
        self._tokens.add(token)
        try:
            return await self.sentinel.execute_with_resilience(
                lambda: token.guard(
                    lambda: self._send(url, endpoint, tenant, payload, method), operation
                ),
                self.APPARATUS,
                operation,
            )
        except CircuitOpenError:
            raise
        except Exception as e:
            timed_out = isinstance(e, RequestTimeoutError)
            self.sentinel.report(
                {
                    "error_code": BRIDGE_FAILURE_CODE,
                    "severity": Severity.HIGH,
                    "apparatus": self.APPARATUS,
                    "operation": operation,
                    "message": TIMEOUT_KEY if timed_out else CONNECTIVITY_KEY,
                    "context": {
                        "endpoint": endpoint,
                        "url": url,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                    "tenant_id": tenant,
                    "is_recoverable": True,
                }
            )
            raise
        finally:
            token.close()
            self._tokens.discard(token)

    async def _send(
        self,
        url: str,
        endpoint: str,
        tenant: str,
        payload: Any,
        method: str,
    ) -> Any:
        kwargs: dict[str, Any] = {"headers": _headers(tenant)}
        if method != "GET" and payload is not None:
            kwargs["json"] = payload

        response = await self._get_client().request(method, url, **kwargs)
        if not response.is_success:
            raise UpstreamStatusError(status_code=response.status_code, endpoint=endpoint)
        if not response.content:
            return None
        return response.json()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # The cancellation token owns the time budget
            self._client = httpx.AsyncClient(timeout=None)
        return self._client


def _headers(tenant: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "x-omnisync-tenant": tenant,
        "x-omnisync-framework-version": FRAMEWORK_VERSION,
    }


def _check_method(method: Any) -> str:
    if not isinstance(method, str) or method.upper() not in ALLOWED_METHODS:
        raise InvalidInputError(f"Unsupported HTTP method: {method!r}", argument="method")
    return method.upper()


def _check_tenant(tenant_id: Any) -> str:
    try:
        return str(uuid.UUID(str(tenant_id)))
    except ValueError as e:
        raise InvalidInputError(f"Tenant ID is not a UUID: {tenant_id!r}", argument="tenant_id", cause=e) from e
