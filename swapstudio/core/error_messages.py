"""
Messages shown in the control panel for each error code.

Control plane rejections and editor errors are shown as they are, since
their text is the only hint about what to fix. Everything else is mapped
to a fixed sentence.
"""

from swapstudio.core.errors import RemoteError, StudioError

ERROR_MESSAGES: dict[str, str] = {
    "CONTROL_PLANE_UNAVAILABLE": "The model service manager is not reachable. Check that it is running and try again.",
    "CONTROL_PLANE_ERROR": "The model service manager rejected the request.",
    "CONFIG_SYNTAX_ERROR": "The configuration is not valid JSON. Fix the highlighted error before saving.",
    "VALIDATION_ERROR": "The value is not valid for this setting.",
    "MODEL_NOT_FOUND": "The requested model is not part of the current configuration.",
    "OPERATION_BUSY": "Another operation is still in progress. Please wait for it to finish.",
    "SNAPSHOT_NOT_LOADED": "The configuration has not been loaded yet. Refresh and try again.",
    "INTERNAL_ERROR": "An unexpected error occurred. Please try again.",
}

VERBATIM_CODES = frozenset({"CONFIG_SYNTAX_ERROR", "VALIDATION_ERROR"})


def get_user_friendly_message(error_code: str, default_message: str | None = None) -> str:
    """Look up the panel message for a code, falling back to ``default_message``."""
    return ERROR_MESSAGES.get(error_code, default_message or ERROR_MESSAGES["INTERNAL_ERROR"])


def message_for(exc: StudioError) -> str:
    """Pick the message shown to the user for a raised error."""
    if exc.code in VERBATIM_CODES:
        return exc.message
    if isinstance(exc, RemoteError):
        return exc.message
    return get_user_friendly_message(exc.code, exc.message)
