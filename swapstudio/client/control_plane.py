"""
Async HTTP client for the model service control plane.

Every call is a request/response exchange. Transport failures surface as
RemoteUnavailableError, any non-success answer as RemoteError carrying the
control plane's own error text.
"""

from typing import Any, Optional, Protocol, TypeVar
from urllib.parse import quote

import httpx
import pydantic
import structlog

from swapstudio.api.schemas.control_plane import (
    ConfigurationInfo,
    ModelConfigurations,
    RegenerateResult,
    SaveConfigResult,
    WireModel,
)
from swapstudio.core.config import settings
from swapstudio.core.errors import RemoteError, RemoteUnavailableError
from swapstudio.core.resilience import call_with_retry

logger = structlog.get_logger()

W = TypeVar("W", bound=WireModel)


class ControlPlane(Protocol):
    """The remote calls the orchestrator depends on."""

    async def get_configuration_info(self) -> ConfigurationInfo: ...

    async def get_model_configurations(self) -> ModelConfigurations: ...

    async def set_backend_override(self, backend_id: Optional[str]) -> None: ...

    async def restart_with_overrides(self) -> None: ...

    async def regenerate_config(self) -> RegenerateResult: ...

    async def save_config_from_json(self, text: str) -> SaveConfigResult: ...

    async def save_config_and_restart(self, text: str) -> None: ...

    async def save_model_configuration(self, name: str, record: dict[str, Any]) -> None: ...

    async def save_all_model_configurations(self, records: list[dict[str, Any]]) -> None: ...

    async def ping(self) -> bool: ...


class ControlPlaneClient:
    """
    httpx-based implementation of the ControlPlane contract.

    Reads are retried while the control plane is unreachable; writes are
    sent exactly once.

    Usage:
        async with ControlPlaneClient() as client:
            info = await client.get_configuration_info()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        read_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Control plane root URL (defaults to settings)
            timeout: Per-request timeout in seconds
            read_attempts: Attempts for idempotent reads
            retry_delay: Initial delay between read attempts
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url or settings.CONTROL_PLANE_URL
        self.read_attempts = (
            read_attempts if read_attempts is not None else settings.CONTROL_PLANE_READ_ATTEMPTS
        )
        self.retry_delay = (
            retry_delay if retry_delay is not None else settings.CONTROL_PLANE_RETRY_DELAY
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.CONTROL_PLANE_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "ControlPlaneClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_configuration_info(self) -> ConfigurationInfo:
        payload = await self._read("getConfigurationInfo", "/api/config/info",
                                   failure_message="Failed to load configuration")
        return self._decode(ConfigurationInfo, payload, "getConfigurationInfo")

    async def get_model_configurations(self) -> ModelConfigurations:
        payload = await self._read("getModelConfigurations", "/api/models/config",
                                   failure_message="Failed to load model configurations")
        return self._decode(ModelConfigurations, payload, "getModelConfigurations")

    async def ping(self) -> bool:
        """Return True if the control plane answers at all."""
        try:
            await self._request("getConfigurationInfo", "GET", "/api/config/info",
                                failure_message="Failed to load configuration")
        except (RemoteUnavailableError, RemoteError):
            return False
        return True

    # =========================================================================
    # Mutations
    # =========================================================================

    async def set_backend_override(self, backend_id: Optional[str]) -> None:
        await self._request(
            "setBackendOverride", "PUT", "/api/backend/override",
            json={"backendId": backend_id},
            failure_message="Failed to set backend",
        )

    async def restart_with_overrides(self) -> None:
        await self._request(
            "restartWithOverrides", "POST", "/api/service/restart",
            failure_message="Failed to restart service",
        )

    async def regenerate_config(self) -> RegenerateResult:
        payload = await self._request(
            "regenerateConfig", "POST", "/api/config/regenerate",
            failure_message="Failed to reconfigure",
        )
        return self._decode(RegenerateResult, payload, "regenerateConfig")

    async def save_config_from_json(self, text: str) -> SaveConfigResult:
        payload = await self._request(
            "saveConfigFromJson", "PUT", "/api/config",
            json={"json": text},
            failure_message="Failed to save configuration",
        )
        return self._decode(SaveConfigResult, payload, "saveConfigFromJson")

    async def save_config_and_restart(self, text: str) -> None:
        """
        One-shot save and restart.

        Kept so the client covers the whole control plane contract. The
        orchestrator sends save_config_from_json and restart_with_overrides
        separately so the saving and restarting phases each wait on their
        own call.
        """
        await self._request(
            "saveConfigAndRestart", "POST", "/api/config/save-and-restart",
            json={"json": text},
            failure_message="Failed to save configuration and restart",
        )

    async def save_model_configuration(self, name: str, record: dict[str, Any]) -> None:
        await self._request(
            "saveModelConfiguration", "PUT", f"/api/models/{quote(name, safe='')}/config",
            json=record,
            failure_message="Failed to save model configuration",
        )

    async def save_all_model_configurations(self, records: list[dict[str, Any]]) -> None:
        await self._request(
            "saveAllModelConfigurations", "PUT", "/api/models/config",
            json={"models": records},
            failure_message="Failed to save model configurations",
        )

    # =========================================================================
    # Transport
    # =========================================================================

    async def _read(self, call: str, path: str, failure_message: str) -> dict[str, Any]:
        return await call_with_retry(
            self._request,
            call,
            "GET",
            path,
            failure_message=failure_message,
            max_attempts=self.read_attempts,
            delay=self.retry_delay,
            exceptions=(RemoteUnavailableError,),
        )

    async def _request(
        self,
        call: str,
        method: str,
        path: str,
        *,
        failure_message: str,
        json: Any = None,
    ) -> dict[str, Any]:
        """
        Send one request and unwrap the control plane's result envelope.

        Raises:
            RemoteUnavailableError: If the control plane could not be reached
            RemoteError: If the call completed without success
        """
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TransportError as e:
            logger.warning("control_plane_unreachable", call=call, error=str(e))
            raise RemoteUnavailableError(
                f"Control plane not available at {self.base_url}",
                details={"call": call, "error": str(e)},
            ) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            logger.warning(
                "control_plane_bad_response",
                call=call,
                status_code=response.status_code,
            )
            raise RemoteError(
                failure_message,
                details={"call": call, "status_code": response.status_code},
            )

        if response.is_error or payload.get("success") is False:
            message = _error_text(payload.get("error")) or failure_message
            logger.warning(
                "control_plane_call_failed",
                call=call,
                status_code=response.status_code,
                error=message,
            )
            raise RemoteError(
                message,
                details={"call": call, "status_code": response.status_code},
            )

        logger.debug("control_plane_call_ok", call=call)
        return payload

    @staticmethod
    def _decode(schema: type[W], payload: dict[str, Any], call: str) -> W:
        try:
            return schema.model_validate(payload)
        except pydantic.ValidationError as e:
            logger.warning("control_plane_malformed_result", call=call, error=str(e))
            raise RemoteError(
                f"Malformed {call} result from control plane",
                details={"call": call, "errors": e.errors(include_url=False, include_context=False)},
            ) from e


def _error_text(error: Any) -> str:
    """The control plane reports errors as a string or as {message: ...}."""
    if isinstance(error, dict):
        return str(error.get("message") or "")
    if error:
        return str(error)
    return ""
