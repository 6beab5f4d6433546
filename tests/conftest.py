"""
Shared pytest fixtures for swapstudio tests.
"""

import asyncio
import json
from typing import Any, Optional

import pytest
import pytest_asyncio

from swapstudio.api.schemas.control_plane import (
    Backend,
    BackendOverride,
    ConfigurationInfo,
    ModelConfig,
    ModelConfigurations,
    RegenerateResult,
    RestartRecommendation,
    SaveConfigResult,
    ServiceStatus,
)
from swapstudio.core.errors import RemoteUnavailableError
from swapstudio.services.orchestrator import OperationOrchestrator


SAMPLE_CONFIG = {
    "healthCheckTimeout": 60,
    "models": {
        "m1": {"cmd": "llama-server --port 9001 -m /models/m1.gguf"},
        "m2": {"cmd": "llama-server --port 9002 -m /models/m2.gguf"},
    },
}


def make_backend(backend_id: str, available: bool = True, **kwargs: Any) -> Backend:
    return Backend(
        id=backend_id,
        display_name=kwargs.pop("display_name", backend_id.upper()),
        is_available=available,
        **kwargs,
    )


def make_model(name: str, **kwargs: Any) -> ModelConfig:
    defaults: dict[str, Any] = {
        "path": f"/models/{name}.gguf",
        "port": 9001,
        "native_context_size": 8192,
        "configured_context_size": 4096,
        "gpu_layers": 99,
    }
    defaults.update(kwargs)
    return ModelConfig(name=name, **defaults)


class FakeControlPlane:
    """
    In-memory control plane.

    Keeps the override and configuration it is sent so reloads see the
    result of earlier mutations. Set ``failures[call]`` to an exception to
    make a call fail, or ``gates[call]`` to an asyncio.Event to hold a call
    until the event is set.
    """

    def __init__(
        self,
        backends: Optional[list[Backend]] = None,
        models: Optional[list[ModelConfig]] = None,
        configuration: Any = None,
        override: Optional[str] = None,
    ) -> None:
        self.backends = backends if backends is not None else [
            make_backend("cpu"),
            make_backend("cuda"),
        ]
        self.models = models if models is not None else [make_model("m1"), make_model("m2")]
        self.configuration = configuration if configuration is not None else SAMPLE_CONFIG
        self.override = override
        self.running = True
        self.discovered_models = 2
        self.restart_recommendation: Optional[RestartRecommendation] = None

        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.reachable = True

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def mutation_names(self) -> list[str]:
        reads = {"get_configuration_info", "get_model_configurations", "ping"}
        return [name for name in self.call_names() if name not in reads]

    async def _enter(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    async def get_configuration_info(self) -> ConfigurationInfo:
        await self._enter("get_configuration_info")
        return ConfigurationInfo(
            available_backends=list(self.backends),
            current_backend_override=BackendOverride(
                backend_id=self.override,
                is_overridden=self.override is not None,
            ),
            configuration=self.configuration,
            config_path="/etc/llama-swap/config.json",
            platform="linux",
            architecture="x64",
            service_status=ServiceStatus(
                running=self.running,
                port=8080,
                process_id=4242,
                active_backend_name=(self.override or "cpu").upper(),
            ),
        )

    async def get_model_configurations(self) -> ModelConfigurations:
        await self._enter("get_model_configurations")
        return ModelConfigurations(models=list(self.models))

    async def set_backend_override(self, backend_id: Optional[str]) -> None:
        await self._enter("set_backend_override", backend_id)
        self.override = backend_id

    async def restart_with_overrides(self) -> None:
        await self._enter("restart_with_overrides")
        self.running = True

    async def regenerate_config(self) -> RegenerateResult:
        await self._enter("regenerate_config")
        return RegenerateResult(discovered_models=self.discovered_models)

    async def save_config_from_json(self, text: str) -> SaveConfigResult:
        await self._enter("save_config_from_json", text)
        self.configuration = json.loads(text)
        return SaveConfigResult(requires_restart=self.restart_recommendation)

    async def save_config_and_restart(self, text: str) -> None:
        await self.save_config_from_json(text)
        await self.restart_with_overrides()

    async def save_model_configuration(self, name: str, record: dict[str, Any]) -> None:
        await self._enter("save_model_configuration", name, record)
        self.models = [
            ModelConfig.model_validate(record) if m.name == name else m for m in self.models
        ]

    async def save_all_model_configurations(self, records: list[dict[str, Any]]) -> None:
        await self._enter("save_all_model_configurations", records)
        self.models = [ModelConfig.model_validate(r) for r in records]

    async def ping(self) -> bool:
        self.calls.append(("ping", ()))
        return self.reachable


@pytest.fixture
def control_plane() -> FakeControlPlane:
    """Create a control plane with two backends (cpu, cuda) and two models (m1, m2)."""
    return FakeControlPlane()


@pytest.fixture
def unreachable_error() -> RemoteUnavailableError:
    return RemoteUnavailableError("Control plane not available at http://127.0.0.1:8091")


@pytest_asyncio.fixture
async def orchestrator(control_plane):
    """Create an orchestrator with real-time status timers."""
    orchestrator = OperationOrchestrator(control_plane, time_scale=1.0, model_save_clears_all=False)
    yield orchestrator
    await orchestrator.aclose()


@pytest_asyncio.fixture
async def loaded_orchestrator(orchestrator):
    """Create an orchestrator that has loaded its first snapshot."""
    await orchestrator.refresh()
    return orchestrator


@pytest_asyncio.fixture
async def fast_orchestrator(control_plane):
    """Create an orchestrator whose scripts and auto-clear run 100x faster."""
    orchestrator = OperationOrchestrator(control_plane, time_scale=0.01, model_save_clears_all=False)
    await orchestrator.refresh()
    yield orchestrator
    await orchestrator.aclose()


@pytest.fixture
def model_factory():
    """Build ModelConfig instances with realistic defaults."""
    return make_model


@pytest.fixture
def backend_factory():
    """Build Backend instances."""
    return make_backend
