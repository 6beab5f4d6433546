"""
Backend selection: explicit override versus auto-detection.
"""

import enum
from dataclasses import dataclass
from typing import Optional

import structlog

from swapstudio.client.control_plane import ControlPlane
from swapstudio.state.snapshot import ConfigSnapshot

logger = structlog.get_logger()

AUTO_BACKEND_ID = "auto"
AUTO_DISPLAY_NAME = "Auto-detect"


class SelectionMode(str, enum.Enum):
    """How the effective backend was chosen."""

    AUTO = "auto"
    EXPLICIT = "explicit"


@dataclass(frozen=True)
class BackendChoice:
    """The backend the service runs with, as shown to the user."""

    mode: SelectionMode
    id: str
    display_name: str
    is_stale: bool = False


def normalize_backend_id(backend_id: Optional[str]) -> Optional[str]:
    """Map the ``"auto"`` pseudo-id (and empty values) to None."""
    if not backend_id or backend_id == AUTO_BACKEND_ID:
        return None
    return backend_id


def backend_label(backend_id: Optional[str]) -> str:
    """Short label used in progress messages."""
    return "auto-detect" if backend_id is None else backend_id


class BackendSelector:
    """Resolves and changes the backend override through the control plane."""

    def __init__(self, client: ControlPlane) -> None:
        self.client = client

    @staticmethod
    def effective_choice(snapshot: ConfigSnapshot) -> BackendChoice:
        """
        Resolve the effective backend of a snapshot.

        With no override the live backend name reported by the service is
        shown when known. An override naming a backend that is not in the
        snapshot is still reported, under its raw id.
        """
        override = snapshot.backend_override
        if override is None:
            return BackendChoice(
                mode=SelectionMode.AUTO,
                id=AUTO_BACKEND_ID,
                display_name=snapshot.service_status.active_backend_name or AUTO_DISPLAY_NAME,
            )

        backend = snapshot.find_backend(override)
        return BackendChoice(
            mode=SelectionMode.EXPLICIT,
            id=override,
            display_name=(backend.display_name or backend.id) if backend else override,
            is_stale=snapshot.override_is_stale,
        )

    async def select(self, backend_id: Optional[str]) -> Optional[str]:
        """
        Store a new override on the control plane. Does not restart the service.

        Returns:
            The normalized override that was sent (None for auto-detect)

        Raises:
            RemoteUnavailableError, RemoteError: From the control plane
        """
        target = normalize_backend_id(backend_id)
        await self.client.set_backend_override(target)
        logger.info("backend_override_set", backend_id=target)
        return target
