"""Infrastructure health probes for Omnisync.

Every probe implements one ``check()`` coroutine. The HealthOrchestrator
runs all registered probes concurrently on each request and consolidates
their heartbeats into a single HealthReport; nothing is cached.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol

import aiosqlite
import httpx

from omnisync.config.config import Config
from omnisync.contracts.models import (
    HealthReport,
    HealthStatus,
    HeartbeatRecord,
    Severity,
)
from omnisync.contracts.validation import validate
from omnisync.observability.correlation import get_trace_id
from omnisync.observability.telemetry import TraceRecorder
from omnisync.resilience.sentinel import Sentinel
from omnisync.utils.errors import ConfigError, DependencyError

logger = logging.getLogger(__name__)

PROBE_FAILURE_CODE = "OS-HEALTH-503"

# Higher wins when consolidating
_PRECEDENCE = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNREACHABLE: 2,
}


class ProbeKind(str, Enum):
    """Family of the infrastructure a probe watches."""

    RELATIONAL = "RELATIONAL"
    VOLATILE_MEMORY = "VOLATILE_MEMORY"
    VECTOR = "VECTOR"
    CUSTOM = "CUSTOM"


class LivenessQuery(Protocol):
    """Persistence boundary: run a trivial query, raise on failure."""

    async def __call__(self) -> Any: ...


class SqliteLivenessQuery:
    """Runs ``SELECT 1`` against a SQLite database through aiosqlite."""

    def __init__(self, path: str):
        self.path = path

    async def __call__(self) -> Any:
        try:
            async with aiosqlite.connect(self.path) as db:
                async with db.execute("SELECT 1") as cursor:
                    return await cursor.fetchone()
        except aiosqlite.Error as e:
            raise DependencyError(
                f"SQLite liveness query failed: {e}", dependency=self.path, cause=e
            ) from e


class HeartbeatProbe(abc.ABC):
    """Base class of every infrastructure probe.

    Subclasses implement ``check()``; ``run()`` adds timing, the timeout
    and failure capture, and never raises.
    """

    kind: ProbeKind = ProbeKind.CUSTOM

    def __init__(
        self,
        name: str,
        node_name: str,
        timeout: float = 5.0,
        sentinel: Sentinel | None = None,
    ):
        if not isinstance(node_name, str) or len(node_name) < 2:
            raise ConfigError(f"Probe '{name}' needs a node name of at least 2 characters", config_key=name)
        self.name = name
        self.node_name = node_name
        self.timeout = timeout
        self.sentinel = sentinel

    @abc.abstractmethod
    async def check(self) -> HealthStatus:
        """Perform the handshake and return the detected status."""

    async def run(self) -> HeartbeatRecord:
        start = time.perf_counter()
        try:
            status = HealthStatus(await asyncio.wait_for(self.check(), timeout=self.timeout))
            latency = round((time.perf_counter() - start) * 1000, 2)
            return HeartbeatRecord(node_name=self.node_name, status=status, latency_ms=latency)
        except asyncio.TimeoutError:
            return self._unreachable(f"Probe timed out after {self.timeout}s")
        except Exception as e:
            return self._unreachable(f"{type(e).__name__}: {e}")

    def _unreachable(self, error_message: str) -> HeartbeatRecord:
        logger.warning(f"Probe {self.name} ({self.node_name}) unreachable: {error_message}")
        if self.sentinel is not None:
            self.sentinel.report(
                {
                    "error_code": PROBE_FAILURE_CODE,
                    "severity": Severity.HIGH,
                    "apparatus": "HealthOrchestrator",
                    "operation": f"probe:{self.name}",
                    "message": error_message,
                    "context": {"node_name": self.node_name, "kind": self.kind.value},
                }
            )
        return HeartbeatRecord(
            node_name=self.node_name,
            status=HealthStatus.UNREACHABLE,
            latency_ms=0,
            error_message=error_message,
        )


class RelationalPersistenceProbe(HeartbeatProbe):
    """Relational store reachable through a liveness query."""

    kind = ProbeKind.RELATIONAL

    def __init__(
        self,
        liveness_query: LivenessQuery,
        name: str = "sql",
        node_name: str = "PostgreSQL/Supabase",
        **kwargs: Any,
    ):
        super().__init__(name, node_name, **kwargs)
        self.liveness_query = liveness_query

    async def check(self) -> HealthStatus:
        await self.liveness_query()
        return HealthStatus.HEALTHY


class _HttpProbe(HeartbeatProbe):
    """Probe answering HEALTHY on 2xx and DEGRADED on any other status."""

    path = "/"

    def __init__(
        self,
        name: str,
        node_name: str,
        url: str | None,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ):
        super().__init__(name, node_name, **kwargs)
        self.url = url.rstrip("/") if url else None
        self._client = client

    def headers(self) -> dict[str, str]:
        return {}

    async def check(self) -> HealthStatus:
        if not self.url:
            raise ConfigError(f"{self.node_name} URL is not configured", config_key=self.name)
        headers = self.headers()
        if self._client is not None:
            response = await self._client.get(f"{self.url}{self.path}", headers=headers)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{self.url}{self.path}", headers=headers)
        return HealthStatus.HEALTHY if response.is_success else HealthStatus.DEGRADED


class VolatileMemoryProbe(_HttpProbe):
    """Upstash Redis REST endpoint: ``GET <url>/ping`` with a bearer token."""

    kind = ProbeKind.VOLATILE_MEMORY
    path = "/ping"

    def __init__(
        self,
        rest_url: str | None,
        token: str | None,
        client: httpx.AsyncClient | None = None,
        name: str = "redis",
        node_name: str = "Upstash/Redis",
        **kwargs: Any,
    ):
        super().__init__(name, node_name, rest_url, client, **kwargs)
        self.token = token

    def headers(self) -> dict[str, str]:
        if not self.url or not self.token:
            raise ConfigError("Upstash credentials are missing", config_key="UPSTASH_REDIS_REST_TOKEN")
        return {"Authorization": f"Bearer {self.token}"}


class VectorDatabaseProbe(_HttpProbe):
    """Qdrant node: ``GET <url>/healthz``."""

    kind = ProbeKind.VECTOR
    path = "/healthz"

    def __init__(
        self,
        url: str | None,
        client: httpx.AsyncClient | None = None,
        name: str = "vector",
        node_name: str = "Qdrant/Cloud",
        **kwargs: Any,
    ):
        super().__init__(name, node_name, url, client, **kwargs)


class CallableProbe(HeartbeatProbe):
    """Adapts an arbitrary ``async () -> HealthStatus`` check."""

    def __init__(
        self,
        name: str,
        node_name: str,
        fn: Callable[[], Awaitable[HealthStatus]],
        **kwargs: Any,
    ):
        super().__init__(name, node_name, **kwargs)
        self._fn = fn

    async def check(self) -> HealthStatus:
        return await self._fn()


class HealthOrchestrator:
    """Runs every registered probe and consolidates the results.

    Example:
        orchestrator = HealthOrchestrator(environment="production")
        orchestrator.register(VectorDatabaseProbe(url="https://qdrant.example"))

        report = await orchestrator.generate_global_health_report()
        if report.overall_status == HealthStatus.UNREACHABLE:
            ...
    """

    APPARATUS = "HealthOrchestrator"

    def __init__(
        self,
        probes: Iterable[HeartbeatProbe] | None = None,
        recorder: TraceRecorder | None = None,
        environment: str = "development",
    ):
        self.recorder = recorder or TraceRecorder()
        self.environment = environment
        self._probes: dict[str, HeartbeatProbe] = {}
        for probe in probes or []:
            self.register(probe)

    @classmethod
    def from_config(
        cls,
        config: Config,
        sentinel: Sentinel,
        client: httpx.AsyncClient | None = None,
    ) -> HealthOrchestrator:
        """Build an orchestrator with the probes the configuration enables."""
        orchestrator = cls(recorder=sentinel.recorder, environment=config.environment)
        options = {"timeout": config.probe_timeout, "sentinel": sentinel}
        if config.database_path:
            orchestrator.register(
                RelationalPersistenceProbe(
                    SqliteLivenessQuery(config.database_path),
                    node_name="SQLite",
                    **options,
                )
            )
        if config.upstash_redis_rest_url or config.upstash_redis_rest_token:
            orchestrator.register(
                VolatileMemoryProbe(
                    config.upstash_redis_rest_url,
                    config.upstash_redis_rest_token,
                    client=client,
                    **options,
                )
            )
        if config.qdrant_url:
            orchestrator.register(VectorDatabaseProbe(config.qdrant_url, client=client, **options))
        return orchestrator

    @property
    def probes(self) -> list[HeartbeatProbe]:
        return list(self._probes.values())

    def register(self, probe: HeartbeatProbe) -> None:
        if probe.name in self._probes:
            raise ConfigError(f"Probe '{probe.name}' is already registered", config_key=probe.name)
        self._probes[probe.name] = probe
        logger.debug(f"Registered probe {probe.name} ({probe.kind.value})")

    async def generate_global_health_report(self) -> HealthReport:
        """Probe every node concurrently and build a fresh report.

        Raises:
            SchemaViolationError: If the consolidated report is malformed
        """
        return await self.recorder.trace_execution(
            self.APPARATUS,
            "generate_global_health_report",
            self._generate,
            {"probe_count": len(self._probes)},
        )

    async def _generate(self) -> HealthReport:
        names = list(self._probes)
        records = await asyncio.gather(*(self._probes[name].run() for name in names))
        components = dict(zip(names, records))
        report = {
            "report_id": str(uuid.uuid4()),
            "overall_status": self.consolidate(components.values()),
            "components": components,
            "environment": self.environment,
            "trace_id": get_trace_id(),
        }
        return validate(HealthReport, report, "HealthOrchestrator.generate_global_health_report")

    @staticmethod
    def consolidate(records: Iterable[HeartbeatRecord] | Mapping[str, HeartbeatRecord]) -> HealthStatus:
        """UNREACHABLE beats DEGRADED beats HEALTHY; no records is HEALTHY."""
        if isinstance(records, Mapping):
            records = records.values()
        overall = HealthStatus.HEALTHY
        for record in records:
            if _PRECEDENCE[record.status] > _PRECEDENCE[overall]:
                overall = record.status
        return overall
