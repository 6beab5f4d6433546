"""
Custom exception hierarchy for swapstudio.

All application errors inherit from StudioError, which provides
consistent error codes and HTTP status codes for API responses.
"""

from typing import Any, Optional


class StudioError(Exception):
    """Base exception for all swapstudio errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Control Plane Errors
# =============================================================================


class RemoteUnavailableError(StudioError):
    """Raised when the control plane cannot be reached at all."""

    code = "CONTROL_PLANE_UNAVAILABLE"
    status_code = 503


class RemoteError(StudioError):
    """Raised when a control plane call completes with a failure."""

    code = "CONTROL_PLANE_ERROR"
    status_code = 502


# =============================================================================
# Edit Buffer Errors
# =============================================================================


class ConfigSyntaxError(StudioError):
    """Raised when the configuration edit buffer is not valid JSON."""

    code = "CONFIG_SYNTAX_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        line: int = 0,
        column: int = 0,
        position: int = 0,
    ) -> None:
        super().__init__(
            message,
            details={"line": line, "column": column, "position": position},
        )
        self.line = line
        self.column = column
        self.position = position


class ValidationError(StudioError):
    """Raised when a model field edit is rejected."""

    code = "VALIDATION_ERROR"
    status_code = 422


# =============================================================================
# Model Errors
# =============================================================================


class ModelNotFoundError(StudioError):
    """Raised when an operation references an unknown model name."""

    code = "MODEL_NOT_FOUND"
    status_code = 404


# =============================================================================
# Orchestration Errors
# =============================================================================


class OperationBusyError(StudioError):
    """Raised when an intent arrives while another operation is in flight."""

    code = "OPERATION_BUSY"
    status_code = 409


class SnapshotNotLoadedError(StudioError):
    """Raised when an operation needs a configuration snapshot and none is loaded."""

    code = "SNAPSHOT_NOT_LOADED"
    status_code = 409

