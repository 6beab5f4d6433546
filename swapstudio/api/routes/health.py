"""
Health check endpoint.

Reports whether the studio is up and whether it can reach the control plane.
"""

import structlog
from fastapi import APIRouter, Request

from swapstudio import __version__
from swapstudio.api.dependencies import ControlPlaneDep, OrchestratorDep
from swapstudio.api.schemas.studio import HealthResponse

router = APIRouter(prefix="/api/health", tags=["system"])

logger = structlog.get_logger()


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns 200 while the studio runs; status is degraded when the control plane is unreachable.",
)
async def health_check(
    request: Request,
    orchestrator: OrchestratorDep,
    control_plane: ControlPlaneDep,
) -> HealthResponse:
    reachable = await control_plane.ping()
    if not reachable:
        logger.warning("health_control_plane_unreachable", path=request.url.path)

    return HealthResponse(
        status="healthy" if reachable else "degraded",
        version=__version__,
        control_plane_reachable=reachable,
        snapshot_loaded=orchestrator.snapshot is not None,
        phase=orchestrator.state.phase,
    )
