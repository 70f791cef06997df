"""Omnisync health API.

Exposes the consolidated infrastructure health report over HTTP.
"""

from omnisync.api.server import create_app

__all__ = ["create_app"]
