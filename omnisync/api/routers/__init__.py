"""API route handlers."""

from omnisync.api.routers import health

__all__ = ["health"]
