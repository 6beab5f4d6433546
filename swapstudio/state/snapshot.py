"""
Configuration snapshot: the last state read from the control plane.

A snapshot is never patched. After every successful mutation the
orchestrator loads a new one and drops the old.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from swapstudio.api.schemas.control_plane import (
    Backend,
    ConfigurationInfo,
    ModelConfig,
    ServiceStatus,
)
from swapstudio.client.control_plane import ControlPlane
from swapstudio.core.errors import StudioError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Merged result of the configuration-info and model-configuration reads.

    Attributes:
        backends: Backends the control plane knows about, unique by id
        backend_override: Explicitly selected backend id, None for auto-detect
        raw_config: Persisted service configuration as a plain JSON tree
        config_path: Where the control plane keeps the configuration file
        performance_settings: Opaque performance tuning tree
        platform: Host platform reported by the control plane
        architecture: Host CPU architecture
        service_status: Process status of the model-serving service
        models: Per-model configuration, in control plane order
        loaded_at: When this snapshot was read
    """

    backends: tuple[Backend, ...] = ()
    backend_override: Optional[str] = None
    raw_config: Any = None
    config_path: str = ""
    performance_settings: Any = None
    platform: str = ""
    architecture: str = ""
    service_status: ServiceStatus = field(default_factory=ServiceStatus)
    models: tuple[ModelConfig, ...] = ()
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_remote(
        cls,
        info: ConfigurationInfo,
        models: list[ModelConfig],
    ) -> "ConfigSnapshot":
        """Build a snapshot from the two control plane reads."""
        backends: dict[str, Backend] = {}
        for backend in info.available_backends:
            if backend.id in backends:
                logger.warning("duplicate_backend_ignored", backend_id=backend.id)
                continue
            backends[backend.id] = backend

        override = None
        if info.current_backend_override is not None:
            override = info.current_backend_override.backend_id or None
        if override == "auto":
            override = None

        return cls(
            backends=tuple(backends.values()),
            backend_override=override,
            raw_config=info.configuration,
            config_path=info.config_path,
            performance_settings=info.performance_settings,
            platform=info.platform,
            architecture=info.architecture,
            service_status=info.service_status,
            models=tuple(models),
        )

    @property
    def available_backends(self) -> list[Backend]:
        return [b for b in self.backends if b.is_available]

    def find_backend(self, backend_id: str) -> Optional[Backend]:
        for backend in self.backends:
            if backend.id == backend_id:
                return backend
        return None

    def find_model(self, name: str) -> Optional[ModelConfig]:
        for model in self.models:
            if model.name == name:
                return model
        return None

    @property
    def override_is_stale(self) -> bool:
        """True when the override names a backend that is missing or unavailable."""
        if self.backend_override is None:
            return False
        backend = self.find_backend(self.backend_override)
        return backend is None or not backend.is_available


async def load_snapshot(client: ControlPlane) -> ConfigSnapshot:
    """
    Read the current configuration from the control plane.

    The configuration-info read is mandatory. A failed model-configuration
    read is tolerated and yields an empty model list.

    Raises:
        RemoteUnavailableError: If the control plane cannot be reached
        RemoteError: If the configuration-info read fails
    """
    info = await client.get_configuration_info()

    models: list[ModelConfig] = []
    try:
        models = (await client.get_model_configurations()).models
    except StudioError as e:
        logger.warning("model_configurations_unavailable", error=e.message)

    snapshot = ConfigSnapshot.from_remote(info, models)
    logger.info(
        "snapshot_loaded",
        backends=len(snapshot.backends),
        models=len(snapshot.models),
        override=snapshot.backend_override,
        running=snapshot.service_status.running,
    )
    return snapshot
