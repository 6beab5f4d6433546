"""
Exception handlers for FastAPI.

Renders StudioError and unexpected exceptions in the ApiResponse format.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from swapstudio.api.schemas.common import ApiResponse, ErrorDetails
from swapstudio.core.config import settings
from swapstudio.core.error_messages import get_user_friendly_message
from swapstudio.core.errors import StudioError
from swapstudio.core.logging import get_logger

logger = get_logger(__name__)


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """
    Convert a StudioError into an error envelope with the error's status code.

    Control plane rejections and editor errors keep their own message.
    """
    logger.warning(
        "api_error",
        error_code=exc.code,
        error_message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
        details=exc.details,
    )
    response = ApiResponse.from_error(exc)
    return JSONResponse(status_code=exc.status_code, content=response.model_dump(mode="json"))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer 500 for anything else; the exception text is shown only in DEBUG."""
    logger.error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    error = ErrorDetails(
        code="INTERNAL_ERROR",
        message=get_user_friendly_message("INTERNAL_ERROR"),
        details={
            "type": type(exc).__name__,
            "technical_message": str(exc) if settings.DEBUG else "See server logs",
        },
    )
    return JSONResponse(status_code=500, content=ApiResponse.fail(error).model_dump(mode="json"))


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StudioError, studio_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
