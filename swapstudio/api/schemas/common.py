"""
Response envelope shared by every studio endpoint.

Successful calls answer ``{"success": true, "data": ...}``. Failures carry
an ``error`` object built from the StudioError that was raised, with the
panel message in ``message`` and the raw error text under
``details.technical_message``.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from swapstudio.core.error_messages import message_for
from swapstudio.core.errors import StudioError

DataT = TypeVar("DataT")


class ErrorDetails(BaseModel):
    code: str = Field(..., description="Machine-readable error code, e.g. OPERATION_BUSY")
    message: str = Field(..., description="Message to show in the control panel")
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_error(cls, exc: StudioError) -> "ErrorDetails":
        """Build the error object for a StudioError, keeping its details."""
        shown = message_for(exc)
        return cls(
            code=exc.code,
            message=shown,
            details={**exc.details, "user_message": shown, "technical_message": exc.message},
        )


class ApiResponse(BaseModel, Generic[DataT]):
    """Envelope around route results and errors."""

    success: bool
    data: DataT | None = None
    error: ErrorDetails | None = None

    @classmethod
    def ok(cls, data: DataT) -> "ApiResponse[DataT]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ErrorDetails) -> "ApiResponse[None]":
        return cls(success=False, error=error)

    @classmethod
    def from_error(cls, exc: StudioError) -> "ApiResponse[None]":
        return cls.fail(ErrorDetails.from_error(exc))
