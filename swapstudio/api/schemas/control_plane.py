"""
Pydantic schemas for the control plane wire contract.

The control plane speaks camelCase JSON; fields are exposed with snake_case
names in Python and aliased to the wire names.
"""

import enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class WireModel(BaseModel):
    """Base for control plane payloads (accepts wire or Python field names)."""

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict[str, Any]:
        """Dump using the control plane's field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ModelStatus(str, enum.Enum):
    """Runtime status of a configured model."""

    AVAILABLE = "available"
    RUNNING = "running"
    ERROR = "error"


class Backend(WireModel):
    """An inference backend build the control plane can run."""

    id: str = Field(..., min_length=1)
    display_name: str = Field(default="", alias="name")
    description: str = ""
    folder: str = ""
    requires_accelerator: bool = Field(default=False, alias="requiresGPU")
    accelerator_class: str = Field(
        default="none",
        alias="gpuType",
        description="nvidia, amd, apple, any or none",
    )
    is_available: bool = Field(default=False, alias="isAvailable")
    binary_path: Optional[str] = Field(default=None, alias="binaryPath")


class BackendOverride(WireModel):
    """The user's explicit backend choice as stored by the control plane."""

    backend_id: Optional[str] = Field(default=None, alias="backendId")
    is_overridden: bool = Field(default=False, alias="isOverridden")
    timestamp: Optional[str] = None


class ServiceStatus(WireModel):
    """Process status of the model-serving service."""

    running: bool = Field(default=False, alias="isRunning")
    port: int = 0
    process_id: Optional[int] = Field(default=None, alias="pid")
    active_backend_name: Optional[str] = Field(default=None, alias="currentBackendName")


class ModelConfig(WireModel):
    """Per-model tunables as stored in the service configuration."""

    name: str = Field(..., min_length=1)
    path: str = ""
    port: int = 0
    is_embedding: bool = Field(default=False, alias="isEmbedding")
    native_context_size: Optional[int] = Field(default=None, alias="nativeContextSize", ge=1)
    configured_context_size: Optional[int] = Field(
        default=None, alias="configuredContextSize", ge=1
    )
    gpu_layers: Optional[int] = Field(default=None, alias="gpuLayers", ge=0)
    batch_size: Optional[int] = Field(default=None, alias="batchSize", ge=1)
    ubatch_size: Optional[int] = Field(default=None, alias="ubatchSize", ge=1)
    threads: Optional[int] = Field(default=None, ge=1)
    flash_attention: Optional[bool] = Field(default=None, alias="flashAttention")
    memory_lock: Optional[bool] = Field(default=None, alias="memoryLock")
    ttl_seconds: Optional[int] = Field(default=None, alias="ttl", ge=0)
    status: ModelStatus = ModelStatus.AVAILABLE

    def to_record(self) -> dict[str, Any]:
        """
        Wire record sent to the control plane when saving.

        Embedding models do not take a context size, so the field is dropped.
        """
        record = self.to_wire()
        if self.is_embedding:
            record.pop("configuredContextSize", None)
        return record


class ConfigurationInfo(WireModel):
    """Result of getConfigurationInfo."""

    available_backends: list[Backend] = Field(default_factory=list, alias="availableBackends")
    current_backend_override: Optional[BackendOverride] = Field(
        default=None, alias="currentBackendOverride"
    )
    configuration: Any = None
    config_path: str = Field(default="", alias="configPath")
    performance_settings: Any = Field(default=None, alias="performanceSettings")
    platform: str = ""
    architecture: str = ""
    service_status: ServiceStatus = Field(default_factory=ServiceStatus, alias="serviceStatus")


class ModelConfigurations(WireModel):
    """Result of getModelConfigurations."""

    models: list[ModelConfig] = Field(default_factory=list)


class RestartRecommendation(WireModel):
    """Whether a saved configuration needs a restart to take effect."""

    required: bool = False
    reason: str = Field(default="", alias="recommendation")


class SaveConfigResult(WireModel):
    """Result of saveConfigFromJson."""

    requires_restart: Optional[RestartRecommendation] = Field(
        default=None, alias="requiresRestart"
    )


class RegenerateResult(WireModel):
    """Result of regenerateConfig."""

    discovered_models: int = Field(default=0, alias="models", ge=0)
