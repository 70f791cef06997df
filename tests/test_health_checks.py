"""Tests for heartbeat probes and the health orchestrator."""

import asyncio

import httpx
import pytest

from omnisync.config import Config
from omnisync.contracts.models import HealthStatus, HeartbeatRecord, TelemetryLevel
from omnisync.resilience.health_checks import (
    CallableProbe,
    HealthOrchestrator,
    ProbeKind,
    RelationalPersistenceProbe,
    SqliteLivenessQuery,
    VectorDatabaseProbe,
    VolatileMemoryProbe,
)
from omnisync.utils.errors import ConfigError, DependencyError


def static_probe(name, status, sentinel=None, **kwargs):
    async def check():
        return status

    return CallableProbe(name, f"{name}-node", check, sentinel=sentinel, **kwargs)


def raising_probe(name, sentinel=None):
    async def check():
        raise RuntimeError("boom")

    return CallableProbe(name, f"{name}-node", check, sentinel=sentinel)


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHeartbeatProbe:
    """Test probe execution."""

    @pytest.mark.asyncio
    async def test_healthy_record(self):
        record = await static_probe("cache", HealthStatus.HEALTHY).run()
        assert record.status == HealthStatus.HEALTHY
        assert record.node_name == "cache-node"
        assert record.latency_ms >= 0
        assert record.latency_ms == round(record.latency_ms, 2)
        assert record.error_message is None

    @pytest.mark.asyncio
    async def test_exception_becomes_unreachable(self, sentinel, sink):
        """Test a failing check yields UNREACHABLE and an OS-HEALTH-503 report."""
        record = await raising_probe("sql", sentinel).run()

        assert record.status == HealthStatus.UNREACHABLE
        assert record.latency_ms == 0
        assert record.error_message == "RuntimeError: boom"
        [entry] = sink.by_level(TelemetryLevel.ERROR)
        assert entry.metadata["error_code"] == "OS-HEALTH-503"
        assert entry.metadata["severity"] == "HIGH"
        assert entry.operation == "probe:sql"

    @pytest.mark.asyncio
    async def test_timeout_becomes_unreachable(self):
        async def check():
            await asyncio.sleep(10)
            return HealthStatus.HEALTHY

        probe = CallableProbe("slow", "slow-node", check, timeout=0.01)
        record = await probe.run()

        assert record.status == HealthStatus.UNREACHABLE
        assert "timed out" in record.error_message

    @pytest.mark.asyncio
    async def test_relational_probe_with_sqlite(self, tmp_path):
        probe = RelationalPersistenceProbe(SqliteLivenessQuery(str(tmp_path / "core.db")), node_name="SQLite")
        record = await probe.run()
        assert probe.kind == ProbeKind.RELATIONAL
        assert record.status == HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_relational_probe_failure(self):
        async def query():
            raise OSError("connection refused")

        record = await RelationalPersistenceProbe(query).run()
        assert record.status == HealthStatus.UNREACHABLE
        assert record.node_name == "PostgreSQL/Supabase"

    @pytest.mark.asyncio
    async def test_sqlite_query_wraps_driver_error(self, tmp_path):
        """Test an unopenable database surfaces as a retryable DependencyError."""
        path = str(tmp_path / "missing" / "core.db")
        with pytest.raises(DependencyError) as exc_info:
            await SqliteLivenessQuery(path)()

        assert exc_info.value.retryable is True
        assert exc_info.value.dependency == path

        record = await RelationalPersistenceProbe(SqliteLivenessQuery(path), node_name="SQLite").run()
        assert record.status == HealthStatus.UNREACHABLE
        assert record.error_message.startswith("DependencyError")



class TestHttpProbes:
    """Test the HTTP-backed probes."""

    @pytest.mark.asyncio
    async def test_volatile_memory_ping(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"result": "PONG"})

        async with mock_client(handler) as client:
            probe = VolatileMemoryProbe("https://redis.test/", "secret", client=client)
            record = await probe.run()

        assert record.status == HealthStatus.HEALTHY
        assert str(seen[0].url) == "https://redis.test/ping"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_volatile_memory_error_status_degraded(self):
        async with mock_client(lambda request: httpx.Response(500)) as client:
            record = await VolatileMemoryProbe("https://redis.test", "secret", client=client).run()
        assert record.status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_volatile_memory_missing_credentials(self):
        record = await VolatileMemoryProbe("https://redis.test", None).run()
        assert record.status == HealthStatus.UNREACHABLE
        assert record.error_message.startswith("ConfigError")

    @pytest.mark.asyncio
    async def test_vector_healthz(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="healthz check passed")

        async with mock_client(handler) as client:
            record = await VectorDatabaseProbe("https://qdrant.test", client=client).run()

        assert record.status == HealthStatus.HEALTHY
        assert record.node_name == "Qdrant/Cloud"
        assert seen[0].url.path == "/healthz"

    @pytest.mark.asyncio
    async def test_transport_error_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        async with mock_client(handler) as client:
            record = await VectorDatabaseProbe("https://qdrant.test", client=client).run()
        assert record.status == HealthStatus.UNREACHABLE


class TestHealthOrchestrator:
    """Test report consolidation."""

    @pytest.mark.asyncio
    async def test_one_unreachable_probe(self, sentinel, recorder):
        """Test one raising probe among two healthy ones."""
        orchestrator = HealthOrchestrator(
            probes=[
                static_probe("redis", HealthStatus.HEALTHY),
                raising_probe("sql", sentinel),
                static_probe("vector", HealthStatus.HEALTHY),
            ],
            recorder=recorder,
            environment="test",
        )

        report = await orchestrator.generate_global_health_report()

        assert report.overall_status == HealthStatus.UNREACHABLE
        assert set(report.components) == {"redis", "sql", "vector"}
        assert report.components["sql"].status == HealthStatus.UNREACHABLE
        assert report.components["redis"].status == HealthStatus.HEALTHY
        assert report.environment == "test"

    @pytest.mark.asyncio
    async def test_malformed_status_marks_only_that_probe(self, sentinel, recorder):
        """Test a check returning an unknown status does not sink the whole report."""
        orchestrator = HealthOrchestrator(
            probes=[
                static_probe("sql", "OK", sentinel),
                static_probe("vector", HealthStatus.HEALTHY),
            ],
            recorder=recorder,
            environment="test",
        )

        report = await orchestrator.generate_global_health_report()

        assert report.overall_status == HealthStatus.UNREACHABLE
        assert report.components["sql"].status == HealthStatus.UNREACHABLE
        assert report.components["sql"].error_message.startswith("ValueError")
        assert report.components["vector"].status == HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_string_status_accepted(self):
        record = await static_probe("cache", "DEGRADED").run()
        assert record.status == HealthStatus.DEGRADED

    def test_short_node_name_rejected(self):
        async def check():
            return HealthStatus.HEALTHY

        with pytest.raises(ConfigError):
            CallableProbe("sql", "S", check)


    @pytest.mark.asyncio
    async def test_degraded(self, recorder):
        orchestrator = HealthOrchestrator(
            probes=[
                static_probe("redis", HealthStatus.DEGRADED),
                static_probe("vector", HealthStatus.HEALTHY),
            ],
            recorder=recorder,
        )
        report = await orchestrator.generate_global_health_report()
        assert report.overall_status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_probes_run_concurrently(self, recorder):
        async def slow():
            await asyncio.sleep(0.2)
            return HealthStatus.HEALTHY

        orchestrator = HealthOrchestrator(
            probes=[CallableProbe(f"node{i}", f"node-{i}", slow) for i in range(5)],
            recorder=recorder,
        )
        loop = asyncio.get_running_loop()
        start = loop.time()
        await orchestrator.generate_global_health_report()
        assert loop.time() - start < 0.8

    @pytest.mark.asyncio
    async def test_fresh_report_each_call(self, recorder, sink):
        orchestrator = HealthOrchestrator(probes=[static_probe("redis", HealthStatus.HEALTHY)], recorder=recorder)
        first = await orchestrator.generate_global_health_report()
        second = await orchestrator.generate_global_health_report()

        assert first.report_id != second.report_id
        performance = sink.by_level(TelemetryLevel.PERFORMANCE)
        assert len(performance) == 2
        assert performance[0].apparatus == "HealthOrchestrator"
        assert performance[0].operation == "generate_global_health_report"

    @pytest.mark.asyncio
    async def test_no_probes_is_healthy(self, recorder):
        report = await HealthOrchestrator(recorder=recorder).generate_global_health_report()
        assert report.overall_status == HealthStatus.HEALTHY
        assert report.components == {}

    def test_duplicate_name_rejected(self, recorder):
        orchestrator = HealthOrchestrator(probes=[static_probe("redis", HealthStatus.HEALTHY)], recorder=recorder)
        with pytest.raises(ConfigError):
            orchestrator.register(static_probe("redis", HealthStatus.HEALTHY))

    def test_consolidate_precedence(self):
        def record(status):
            return HeartbeatRecord(node_name="node", status=status, latency_ms=1)

        assert HealthOrchestrator.consolidate([]) == HealthStatus.HEALTHY
        assert HealthOrchestrator.consolidate(
            [record(HealthStatus.HEALTHY), record(HealthStatus.DEGRADED)]
        ) == HealthStatus.DEGRADED
        assert HealthOrchestrator.consolidate(
            {"a": record(HealthStatus.UNREACHABLE), "b": record(HealthStatus.DEGRADED)}
        ) == HealthStatus.UNREACHABLE

    def test_from_config(self, sentinel):
        config = Config(
            environment="staging",
            database_path=":memory:",
            upstash_redis_rest_url="https://redis.test",
            upstash_redis_rest_token="secret",
            qdrant_url="https://qdrant.test",
            probe_timeout=2.0,
        )
        orchestrator = HealthOrchestrator.from_config(config, sentinel)

        assert orchestrator.environment == "staging"
        assert [p.name for p in orchestrator.probes] == ["sql", "redis", "vector"]
        assert all(p.timeout == 2.0 for p in orchestrator.probes)

    def test_from_config_without_infrastructure(self, sentinel):
        assert HealthOrchestrator.from_config(Config(), sentinel).probes == []
