"""Tests for the NexusClient endpoint proxies."""

import json
import uuid

import httpx
import pytest

from omnisync.bridge import AUTHORISED_ENDPOINTS, NexusClient, RequestBridge
from omnisync.contracts.models import BridgeConfiguration
from omnisync.utils.errors import InvalidInputError

TENANT = str(uuid.uuid4())


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def nexus(sentinel, requests_seen):
    def handler(request):
        requests_seen.append(request)
        return httpx.Response(200, json={"status": "ACCEPTED"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    bridge = RequestBridge(
        sentinel,
        client=client,
        configuration=BridgeConfiguration(base_url="https://hub.test"),
    )
    return NexusClient(bridge)


class TestNexusClient:
    """Test high-level dispatch."""

    def test_authorised_endpoints(self):
        assert AUTHORISED_ENDPOINTS == {
            "/v1/neural/chat",
            "/v1/neural/ingest",
            "/v1/health/pulse",
            "/v1/auth/session",
        }

    @pytest.mark.asyncio
    async def test_chat_inference_payload(self, nexus, requests_seen):
        result = await nexus.dispatch_chat_inference(TENANT, "  where is my order?  ")

        assert result == {"status": "ACCEPTED"}
        request = requests_seen[0]
        assert request.url.path == "/v1/neural/chat"
        assert json.loads(request.content) == {
            "payload": {"type": "TEXT", "content": "where is my order?"}
        }

    @pytest.mark.asyncio
    async def test_ingest(self, nexus, requests_seen):
        document = {"content": "manual v2", "metadata": {"lang": "es"}}
        await nexus.ingest_technical_knowledge(TENANT, document)
        assert requests_seen[0].url.path == "/v1/neural/ingest"
        assert json.loads(requests_seen[0].content) == document

    @pytest.mark.asyncio
    async def test_system_pulse(self, nexus, requests_seen):
        await nexus.check_system_pulse(TENANT)
        assert requests_seen[0].url.path == "/v1/health/pulse"
        assert json.loads(requests_seen[0].content) == {}

    @pytest.mark.asyncio
    async def test_unauthorised_endpoint_rejected(self, nexus, requests_seen):
        with pytest.raises(InvalidInputError):
            await nexus.dispatch("/v1/admin/drop", TENANT, {})
        assert requests_seen == []

    @pytest.mark.asyncio
    async def test_chat_content_must_be_text(self, nexus):
        with pytest.raises(InvalidInputError):
            await nexus.dispatch_chat_inference(TENANT, None)
