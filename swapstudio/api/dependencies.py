"""Request dependencies: the long-lived orchestrator and its control plane client."""

from typing import Annotated

from fastapi import Depends, Request

from swapstudio.client.control_plane import ControlPlane
from swapstudio.services.orchestrator import OperationOrchestrator


def get_orchestrator(request: Request) -> OperationOrchestrator:
    return request.app.state.orchestrator


def get_control_plane(
    orchestrator: Annotated[OperationOrchestrator, Depends(get_orchestrator)],
) -> ControlPlane:
    return orchestrator.client


OrchestratorDep = Annotated[OperationOrchestrator, Depends(get_orchestrator)]
ControlPlaneDep = Annotated[ControlPlane, Depends(get_control_plane)]
