"""FastAPI server factory and application setup."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request

from omnisync import __version__
from omnisync.api.exceptions import setup_exception_handlers
from omnisync.api.routers import health
from omnisync.config import Config, load_config
from omnisync.observability.correlation import get_trace_id, reset_trace_id, set_trace_id
from omnisync.observability.telemetry import TraceRecorder
from omnisync.resilience.health_checks import HealthOrchestrator
from omnisync.resilience.sentinel import Sentinel

logger = logging.getLogger(__name__)

TRACE_HEADER = "x-omnisync-trace"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager (startup/shutdown).

    Builds whichever shared components were not injected into
    ``create_app`` and releases the probe HTTP client on shutdown.
    """
    if getattr(app.state, "config", None) is None:
        app.state.config = load_config()
    config: Config = app.state.config

    if getattr(app.state, "sentinel", None) is None:
        recorder = TraceRecorder(verbose_enabled=config.verbose)
        app.state.sentinel = Sentinel.from_config(config, recorder)

    client: Optional[httpx.AsyncClient] = None
    if getattr(app.state, "orchestrator", None) is None:
        client = httpx.AsyncClient()
        app.state.orchestrator = HealthOrchestrator.from_config(config, app.state.sentinel, client)
        names = ", ".join(probe.name for probe in app.state.orchestrator.probes) or "none"
        logger.info(f"Health probes registered: {names}")

    logger.info(f"Omnisync API started (environment={config.environment})")

    yield

    if client is not None:
        await client.aclose()


def _valid_trace_id(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def create_app(
    config: Optional[Config] = None,
    sentinel: Optional[Sentinel] = None,
    orchestrator: Optional[HealthOrchestrator] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Configuration (loaded from the environment if None)
        sentinel: Shared Sentinel (built from config if None)
        orchestrator: Health orchestrator (built from config if None)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Omnisync Core API",
        description="Health surface of the Omnisync resilience and observability core",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.config = config
    app.state.sentinel = sentinel
    app.state.orchestrator = orchestrator

    @app.middleware("http")
    async def bind_trace_id(request: Request, call_next):
        token = set_trace_id(_valid_trace_id(request.headers.get(TRACE_HEADER)))
        try:
            response = await call_next(request)
            trace_id = get_trace_id()
            if trace_id:
                response.headers[TRACE_HEADER] = trace_id
            return response
        finally:
            reset_trace_id(token)

    app.include_router(health.router, tags=["health"])
    setup_exception_handlers(app)

    return app
