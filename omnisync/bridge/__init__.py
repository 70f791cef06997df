"""Outbound request bridge to the neural hub."""

from omnisync.bridge.cancellation import CancellationToken
from omnisync.bridge.nexus_client import AUTHORISED_ENDPOINTS, NexusClient
from omnisync.bridge.request_bridge import RequestBridge

__all__ = [
    "AUTHORISED_ENDPOINTS",
    "CancellationToken",
    "NexusClient",
    "RequestBridge",
]
