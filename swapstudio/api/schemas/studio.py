"""
Pydantic schemas for the studio API endpoints.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from swapstudio.api.schemas.control_plane import Backend, ModelConfig, ModelStatus
from swapstudio.services.operation import Operation, OperationState, Phase
from swapstudio.state.backend_selector import BackendChoice, SelectionMode


# =============================================================================
# Requests
# =============================================================================


class BackendChangeRequest(BaseModel):
    """Request schema for changing the backend."""

    backend_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Backend id to select; null or 'auto' for auto-detect",
        examples=["cuda", "auto"],
    )


class ConfigTextRequest(BaseModel):
    """Request schema carrying raw configuration JSON text."""

    text: str = Field(..., description="Configuration as JSON text")


class ModelPatchRequest(BaseModel):
    """Request schema for changing one model setting."""

    field: str = Field(
        ...,
        description="Setting name, e.g. gpuLayers or gpu_layers",
        examples=["gpuLayers"],
    )
    value: Any = Field(..., description="New value for the setting")


# =============================================================================
# Responses
# =============================================================================


class StatusResponse(BaseModel):
    """Current orchestrator status."""

    phase: Phase
    message: str
    has_unsaved_edits: bool
    operation: Optional[Operation] = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_state(cls, state: OperationState) -> "StatusResponse":
        return cls(
            phase=state.phase,
            message=state.message,
            has_unsaved_edits=state.has_unsaved_edits,
            operation=state.operation,
            details=dict(state.details),
        )


class BackendResponse(BaseModel):
    """A backend the service can run with."""

    id: str
    display_name: str
    description: str
    requires_accelerator: bool
    accelerator_class: str
    is_available: bool
    binary_path: Optional[str] = None

    @classmethod
    def from_backend(cls, backend: Backend) -> "BackendResponse":
        return cls(
            id=backend.id,
            display_name=backend.display_name or backend.id,
            description=backend.description,
            requires_accelerator=backend.requires_accelerator,
            accelerator_class=backend.accelerator_class,
            is_available=backend.is_available,
            binary_path=backend.binary_path,
        )


class BackendChoiceResponse(BaseModel):
    """The effective backend selection."""

    mode: SelectionMode
    id: str
    display_name: str
    is_stale: bool

    @classmethod
    def from_choice(cls, choice: BackendChoice) -> "BackendChoiceResponse":
        return cls(
            mode=choice.mode,
            id=choice.id,
            display_name=choice.display_name,
            is_stale=choice.is_stale,
        )


class ServiceStatusResponse(BaseModel):
    """Process status of the model-serving service."""

    running: bool
    port: int
    process_id: Optional[int] = None
    active_backend_name: Optional[str] = None


class ModelConfigResponse(BaseModel):
    """Buffered configuration of one model."""

    name: str
    path: str
    port: int
    is_embedding: bool
    native_context_size: Optional[int] = None
    configured_context_size: Optional[int] = None
    gpu_layers: Optional[int] = None
    batch_size: Optional[int] = None
    ubatch_size: Optional[int] = None
    threads: Optional[int] = None
    flash_attention: Optional[bool] = None
    memory_lock: Optional[bool] = None
    ttl_seconds: Optional[int] = None
    status: ModelStatus
    unsaved: bool = False

    @classmethod
    def from_model(cls, model: ModelConfig, unsaved: bool = False) -> "ModelConfigResponse":
        return cls(**model.model_dump(), unsaved=unsaved)


class ConfigErrorResponse(BaseModel):
    """Why the configuration edit buffer cannot be saved."""

    message: str
    line: int
    column: int
    position: int


class SnapshotResponse(BaseModel):
    """Loaded configuration plus the state of the edit buffers."""

    backends: list[BackendResponse]
    available_backend_count: int
    backend_override: Optional[str] = None
    effective_backend: BackendChoiceResponse
    configuration: Any = None
    config_path: str
    performance_settings: Any = None
    platform: str
    architecture: str
    service_status: ServiceStatusResponse
    models: list[ModelConfigResponse]
    config_text: str
    config_dirty: bool
    config_error: Optional[ConfigErrorResponse] = None
    loaded_at: datetime
    status: StatusResponse


class ExportResponse(BaseModel):
    """Configuration export."""

    filename: str = "llama-swap-config.json"
    text: str


class HealthResponse(BaseModel):
    """Studio health."""

    status: str = Field(..., description="healthy or degraded")
    version: str
    control_plane_reachable: bool
    snapshot_loaded: bool
    phase: Phase
