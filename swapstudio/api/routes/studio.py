"""
Studio API endpoints.

Forwards control panel intents to the orchestrator. Operations answer 202
with the status they started in; pass ``wait=true`` to get the final status
instead. Status changes are also pushed over Socket.IO.
"""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Path, Query

from swapstudio.api.dependencies import OrchestratorDep
from swapstudio.api.schemas.common import ApiResponse
from swapstudio.api.schemas.studio import (
    BackendChangeRequest,
    BackendChoiceResponse,
    BackendResponse,
    ConfigErrorResponse,
    ConfigTextRequest,
    ExportResponse,
    ModelConfigResponse,
    ModelPatchRequest,
    ServiceStatusResponse,
    SnapshotResponse,
    StatusResponse,
)
from swapstudio.core.errors import ConfigSyntaxError
from swapstudio.services.operation import OperationState
from swapstudio.services.orchestrator import OperationOrchestrator

router = APIRouter(prefix="/api/studio", tags=["studio"])

ModelName = Annotated[str, Path(description="Model name", min_length=1)]
Wait = Annotated[bool, Query(description="Wait for the operation to finish")]


async def _operation_response(
    orchestrator: OperationOrchestrator,
    task: "asyncio.Task[OperationState]",
    wait: bool,
) -> ApiResponse[StatusResponse]:
    state = await task if wait else orchestrator.state
    return ApiResponse.ok(StatusResponse.from_state(state))


def _snapshot_response(orchestrator: OperationOrchestrator) -> SnapshotResponse:
    snapshot = orchestrator.require_snapshot()
    registry = orchestrator.registry
    status = snapshot.service_status
    error = orchestrator.config_error

    config_error = None
    if isinstance(error, ConfigSyntaxError):
        config_error = ConfigErrorResponse(
            message=error.message,
            line=error.line,
            column=error.column,
            position=error.position,
        )

    return SnapshotResponse(
        backends=[BackendResponse.from_backend(b) for b in snapshot.backends],
        available_backend_count=len(snapshot.available_backends),
        backend_override=snapshot.backend_override,
        effective_backend=BackendChoiceResponse.from_choice(orchestrator.effective_choice()),
        configuration=snapshot.raw_config,
        config_path=snapshot.config_path,
        performance_settings=snapshot.performance_settings,
        platform=snapshot.platform,
        architecture=snapshot.architecture,
        service_status=ServiceStatusResponse(
            running=status.running,
            port=status.port,
            process_id=status.process_id,
            active_backend_name=status.active_backend_name,
        ),
        models=[
            ModelConfigResponse.from_model(m, unsaved=registry.is_dirty(m.name))
            for m in registry
        ],
        config_text=orchestrator.config_text,
        config_dirty=orchestrator.config_dirty,
        config_error=config_error,
        loaded_at=snapshot.loaded_at,
        status=StatusResponse.from_state(orchestrator.state),
    )


# =============================================================================
# State
# =============================================================================


@router.get(
    "/status",
    response_model=ApiResponse[StatusResponse],
    summary="Get operation status",
)
async def get_status(orchestrator: OrchestratorDep) -> ApiResponse[StatusResponse]:
    return ApiResponse.ok(StatusResponse.from_state(orchestrator.state))


@router.get(
    "/snapshot",
    response_model=ApiResponse[SnapshotResponse],
    summary="Get loaded configuration",
    description="Returns the last loaded configuration and the edit buffers.",
)
async def get_snapshot(orchestrator: OrchestratorDep) -> ApiResponse[SnapshotResponse]:
    """
    Get the loaded configuration.

    If the last load failed and nothing was loaded before, that load error
    is returned instead.
    """
    if orchestrator.snapshot is None and orchestrator.load_error is not None:
        raise orchestrator.load_error
    return ApiResponse.ok(_snapshot_response(orchestrator))


@router.post(
    "/refresh",
    response_model=ApiResponse[SnapshotResponse],
    summary="Reload configuration",
)
async def refresh(orchestrator: OrchestratorDep) -> ApiResponse[SnapshotResponse]:
    await orchestrator.refresh()
    return ApiResponse.ok(_snapshot_response(orchestrator))


# =============================================================================
# Backend and service operations
# =============================================================================


@router.put(
    "/backend",
    response_model=ApiResponse[StatusResponse],
    status_code=202,
    summary="Change backend",
    description="Select a backend (or auto-detect) and restart the service.",
)
async def change_backend(
    request: BackendChangeRequest,
    orchestrator: OrchestratorDep,
    wait: Wait = False,
) -> ApiResponse[StatusResponse]:
    task = orchestrator.change_backend(request.backend_id)
    return await _operation_response(orchestrator, task, wait)


@router.post(
    "/reconfigure",
    response_model=ApiResponse[StatusResponse],
    status_code=202,
    summary="Regenerate configuration",
)
async def reconfigure(
    orchestrator: OrchestratorDep,
    wait: Wait = False,
) -> ApiResponse[StatusResponse]:
    task = orchestrator.reconfigure()
    return await _operation_response(orchestrator, task, wait)


@router.post(
    "/restart",
    response_model=ApiResponse[StatusResponse],
    status_code=202,
    summary="Restart service",
)
async def restart(
    orchestrator: OrchestratorDep,
    wait: Wait = False,
) -> ApiResponse[StatusResponse]:
    task = orchestrator.restart()
    return await _operation_response(orchestrator, task, wait)


# =============================================================================
# Raw configuration
# =============================================================================


@router.put(
    "/config/draft",
    response_model=ApiResponse[StatusResponse],
    summary="Edit configuration text",
    description="Replace the configuration edit buffer. Invalid JSON is kept but blocks saving.",
)
async def edit_config(
    request: ConfigTextRequest,
    orchestrator: OrchestratorDep,
) -> ApiResponse[StatusResponse]:
    state = orchestrator.edit_config_text(request.text)
    return ApiResponse.ok(StatusResponse.from_state(state))


@router.delete(
    "/config/draft",
    response_model=ApiResponse[StatusResponse],
    summary="Discard configuration edits",
)
async def reset_config(orchestrator: OrchestratorDep) -> ApiResponse[StatusResponse]:
    state = orchestrator.reset_config_edits()
    return ApiResponse.ok(StatusResponse.from_state(state))


@router.post(
    "/config/save",
    response_model=ApiResponse[StatusResponse],
    status_code=202,
    summary="Save configuration",
)
async def save_config(
    orchestrator: OrchestratorDep,
    wait: Wait = False,
) -> ApiResponse[StatusResponse]:
    task = orchestrator.save_config()
    return await _operation_response(orchestrator, task, wait)


@router.post(
    "/config/save-and-restart",
    response_model=ApiResponse[StatusResponse],
    status_code=202,
    summary="Save configuration and restart",
)
async def save_config_and_restart(
    orchestrator: OrchestratorDep,
    wait: Wait = False,
) -> ApiResponse[StatusResponse]:
    task = orchestrator.save_config_and_restart()
    return await _operation_response(orchestrator, task, wait)


@router.get(
    "/config/export",
    response_model=ApiResponse[ExportResponse],
    summary="Export configuration",
)
async def export_config(orchestrator: OrchestratorDep) -> ApiResponse[ExportResponse]:
    return ApiResponse.ok(ExportResponse(text=orchestrator.export_config()))


@router.post(
    "/config/import",
    response_model=ApiResponse[StatusResponse],
    summary="Import configuration",
    description="Validate JSON text and load it into the configuration edit buffer.",
)
async def import_config(
    request: ConfigTextRequest,
    orchestrator: OrchestratorDep,
) -> ApiResponse[StatusResponse]:
    state = orchestrator.import_config(request.text)
    return ApiResponse.ok(StatusResponse.from_state(state))


# =============================================================================
# Model configuration
# =============================================================================


@router.patch(
    "/models/{name}",
    response_model=ApiResponse[ModelConfigResponse],
    summary="Change a model setting",
)
async def patch_model(
    name: ModelName,
    request: ModelPatchRequest,
    orchestrator: OrchestratorDep,
) -> ApiResponse[ModelConfigResponse]:
    model = orchestrator.patch_model(name, request.field, request.value)
    return ApiResponse.ok(ModelConfigResponse.from_model(model, unsaved=True))


@router.post(
    "/models/save",
    response_model=ApiResponse[StatusResponse],
    status_code=202,
    summary="Save all model configurations",
)
async def save_all_models(
    orchestrator: OrchestratorDep,
    wait: Wait = False,
) -> ApiResponse[StatusResponse]:
    task = orchestrator.save_all_models()
    return await _operation_response(orchestrator, task, wait)


@router.post(
    "/models/{name}/save",
    response_model=ApiResponse[StatusResponse],
    status_code=202,
    summary="Save one model configuration",
)
async def save_model(
    name: ModelName,
    orchestrator: OrchestratorDep,
    wait: Wait = False,
) -> ApiResponse[StatusResponse]:
    task = orchestrator.save_model(name)
    return await _operation_response(orchestrator, task, wait)
