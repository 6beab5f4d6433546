"""
Pydantic schemas for API request/response validation and the control plane contract.
"""

from swapstudio.api.schemas.common import ApiResponse, ErrorDetails
from swapstudio.api.schemas.control_plane import (
    Backend,
    BackendOverride,
    ConfigurationInfo,
    ModelConfig,
    ModelConfigurations,
    ModelStatus,
    RegenerateResult,
    RestartRecommendation,
    SaveConfigResult,
    ServiceStatus,
)

__all__ = [
    "ApiResponse",
    "Backend",
    "BackendOverride",
    "ConfigurationInfo",
    "ErrorDetails",
    "ModelConfig",
    "ModelConfigurations",
    "ModelStatus",
    "RegenerateResult",
    "RestartRecommendation",
    "SaveConfigResult",
    "ServiceStatus",
]
