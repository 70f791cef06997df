"""High-level client for the authorised hub endpoints."""

from __future__ import annotations

import logging
from typing import Any

from omnisync.bridge.request_bridge import RequestBridge
from omnisync.utils.errors import InvalidInputError

logger = logging.getLogger(__name__)

CHAT_ENDPOINT = "/v1/neural/chat"
INGEST_ENDPOINT = "/v1/neural/ingest"
PULSE_ENDPOINT = "/v1/health/pulse"
SESSION_ENDPOINT = "/v1/auth/session"

AUTHORISED_ENDPOINTS = frozenset({CHAT_ENDPOINT, INGEST_ENDPOINT, PULSE_ENDPOINT, SESSION_ENDPOINT})


class NexusClient:
    """Dispatches validated requests through a RequestBridge."""

    APPARATUS = "NexusClient"

    def __init__(self, bridge: RequestBridge):
        self.bridge = bridge
        self.recorder = bridge.recorder

    async def dispatch(self, endpoint: str, tenant_id: str, payload: Any = None) -> Any:
        """Send ``payload`` to an authorised endpoint.

        Raises:
            InvalidInputError: If the endpoint is not authorised
        """
        if endpoint not in AUTHORISED_ENDPOINTS:
            raise InvalidInputError(f"Endpoint is not authorised: {endpoint!r}", argument="endpoint")

        self.recorder.verbose(
            self.APPARATUS, "ignition", "core.nexus.dispatch", {"endpoint": endpoint}
        )
        return await self.bridge.request(endpoint, tenant_id, payload)

    async def dispatch_chat_inference(self, tenant_id: str, content: str) -> Any:
        if not isinstance(content, str):
            raise InvalidInputError("Chat content must be a string", argument="content")
        return await self.dispatch(
            CHAT_ENDPOINT, tenant_id, {"payload": {"type": "TEXT", "content": content.strip()}}
        )

    async def ingest_technical_knowledge(self, tenant_id: str, document: Any) -> Any:
        return await self.dispatch(INGEST_ENDPOINT, tenant_id, document)

    async def check_system_pulse(self, tenant_id: str) -> Any:
        return await self.dispatch(PULSE_ENDPOINT, tenant_id, {})
