"""Dependency injection for FastAPI.

Shared components live on ``app.state`` and are built by the lifespan.
"""

from fastapi import HTTPException, Request, status

from omnisync.config import Config
from omnisync.resilience.health_checks import HealthOrchestrator


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API not fully initialized",
        )
    return value


async def get_config(request: Request) -> Config:
    """Get configuration from app state."""
    return _state(request, "config")


async def get_orchestrator(request: Request) -> HealthOrchestrator:
    """Get the health orchestrator from app state."""
    return _state(request, "orchestrator")
