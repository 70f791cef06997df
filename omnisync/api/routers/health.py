"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from omnisync import __version__
from omnisync.api.dependencies import get_config, get_orchestrator
from omnisync.api.models.responses import LivenessResponse
from omnisync.config import Config
from omnisync.contracts.models import HealthReport, HealthStatus
from omnisync.resilience.health_checks import HealthOrchestrator

router = APIRouter()


@router.get("/health", response_model=HealthReport)
async def health_check(orchestrator: HealthOrchestrator = Depends(get_orchestrator)):
    """Probe every configured node and return the consolidated report.

    Returns 200 for HEALTHY and DEGRADED, 503 for UNREACHABLE.
    """
    report = await orchestrator.generate_global_health_report()
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if report.overall_status == HealthStatus.UNREACHABLE
        else status.HTTP_200_OK
    )
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))


@router.get("/live", response_model=LivenessResponse)
async def liveness_check(config: Config = Depends(get_config)):
    """Liveness check.

    Returns 200 if the process is running. Does not probe dependencies.
    """
    return LivenessResponse(
        status="alive",
        version=__version__,
        environment=config.environment,
        timestamp=datetime.now(timezone.utc),
    )
