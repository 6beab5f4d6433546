"""
Operation orchestrator for backend configuration changes.

Owns the configuration snapshot and edit buffers, sequences control plane
calls for each user intent, and publishes a status stream. At most one
operation runs at a time; intents that arrive while one is in flight are
rejected, never queued.
"""

import asyncio
import inspect
from collections.abc import Awaitable
from dataclasses import replace
from functools import partial
from typing import Any, Callable, Optional

import structlog

from swapstudio.api.schemas.control_plane import ModelConfig
from swapstudio.client.control_plane import ControlPlane
from swapstudio.core.config import settings
from swapstudio.core.errors import (
    OperationBusyError,
    SnapshotNotLoadedError,
    StudioError,
)
from swapstudio.services.operation import Operation, OperationState, Phase
from swapstudio.services.progress import (
    AUTO_CLEAR_DELAYS,
    CHANGE_BACKEND_SCRIPT,
    DEFAULT_CLEAR_DELAYS,
    RESTART_RECOMMENDED_DELAY,
    RESTART_SCRIPT,
    SAVE_AND_RESTART_SCRIPT,
    ClearDelays,
    ProgressScript,
    ScriptPlayer,
)
from swapstudio.state import change_detector
from swapstudio.state.backend_selector import (
    AUTO_DISPLAY_NAME,
    BackendChoice,
    BackendSelector,
    backend_label,
    normalize_backend_id,
)
from swapstudio.state.model_registry import ModelConfigRegistry
from swapstudio.state.snapshot import ConfigSnapshot, load_snapshot
from swapstudio.state.validation import ValidationGate, validate

logger = structlog.get_logger()

StatusCallback = Callable[[OperationState], Any]


class OperationOrchestrator:
    """
    State machine driving the control plane.

    Intent methods (change_backend, reconfigure, restart, save_config,
    save_config_and_restart, save_model, save_all_models) are plain methods:
    they reject synchronously with OperationBusyError or ConfigSyntaxError,
    otherwise publish the first transition and return an asyncio.Task that
    resolves to the terminal OperationState. Remote failures never escape
    the task; they end in the error phase with the failure message.

    Usage:
        orchestrator = OperationOrchestrator(ControlPlaneClient())
        await orchestrator.refresh()
        state = await orchestrator.change_backend("cuda")
    """

    def __init__(
        self,
        client: ControlPlane,
        time_scale: Optional[float] = None,
        model_save_clears_all: Optional[bool] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            client: Control plane the operations are sent to
            time_scale: Multiplier for scripted progress and auto-clear delays
            model_save_clears_all: Saving one model also clears other models' edits
        """
        self.client = client
        self.selector = BackendSelector(client)
        self.time_scale = settings.STUDIO_TIME_SCALE if time_scale is None else time_scale
        self.model_save_clears_all = (
            settings.MODEL_SAVE_CLEARS_ALL_EDITS
            if model_save_clears_all is None
            else model_save_clears_all
        )

        self._snapshot: Optional[ConfigSnapshot] = None
        self.load_error: Optional[StudioError] = None

        # Raw JSON editor buffer
        self._config_baseline = ""
        self._config_text = ""
        self._config_dirty = False
        self._gate = ValidationGate()

        self.registry = ModelConfigRegistry()

        self._state = OperationState()
        self._operation: Optional[Operation] = None
        self._generation = 0
        self._refreshing = False
        self._tasks: set[asyncio.Task[OperationState]] = set()
        self._player: Optional[ScriptPlayer] = None
        self._clear_handle: Optional[asyncio.TimerHandle] = None

        self._subscribers: list[StatusCallback] = []
        self._notifications: set[asyncio.Future[Any]] = set()

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._refreshing or self._state.phase.in_flight

    @property
    def snapshot(self) -> Optional[ConfigSnapshot]:
        return self._snapshot

    def require_snapshot(self) -> ConfigSnapshot:
        if self._snapshot is None:
            raise SnapshotNotLoadedError("Configuration has not been loaded")
        return self._snapshot

    @property
    def has_unsaved_edits(self) -> bool:
        return self._config_dirty or self.registry.dirty

    @property
    def config_text(self) -> str:
        return self._config_text

    @property
    def config_dirty(self) -> bool:
        return self._config_dirty

    @property
    def config_error(self) -> Optional[StudioError]:
        return self._gate.error

    def effective_choice(self) -> BackendChoice:
        return self.selector.effective_choice(self.require_snapshot())

    # =========================================================================
    # Status stream
    # =========================================================================

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """
        Register a status callback, called on every transition.

        Coroutine callbacks are scheduled on the running loop.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set_state(self, state: OperationState) -> OperationState:
        self._state = state
        logger.debug(
            "studio_status",
            phase=state.phase.value,
            message=state.message,
            has_unsaved_edits=state.has_unsaved_edits,
        )
        for callback in list(self._subscribers):
            try:
                result = callback(state)
                if inspect.isawaitable(result):
                    future = asyncio.ensure_future(result)
                    self._notifications.add(future)
                    future.add_done_callback(self._notification_done)
            except Exception as e:
                logger.warning("status_subscriber_failed", error=str(e))
        return state

    def _notification_done(self, future: asyncio.Future[Any]) -> None:
        self._notifications.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.warning("status_subscriber_failed", error=str(future.exception()))

    def _transition(
        self,
        phase: Phase,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> OperationState:
        return self._set_state(
            OperationState(
                phase=phase,
                message=message,
                has_unsaved_edits=self.has_unsaved_edits,
                operation=self._operation,
                details=details or {},
            )
        )

    def _publish_edits(self) -> OperationState:
        """Re-publish the current phase with a fresh unsaved-edits flag."""
        return self._set_state(replace(self._state, has_unsaved_edits=self.has_unsaved_edits))

    # =========================================================================
    # Loading
    # =========================================================================

    async def refresh(self) -> ConfigSnapshot:
        """
        Reload the snapshot outside of any operation.

        Holds the busy guard until the load lands, so intents and edits are
        rejected meanwhile.

        Raises:
            OperationBusyError: If an operation or another refresh is in flight
            RemoteUnavailableError, RemoteError: If the load fails
        """
        self._ensure_idle("refresh")
        self._refreshing = True
        try:
            await self._reload()
        finally:
            self._refreshing = False
        self._publish_edits()
        return self.require_snapshot()

    async def _reload(self) -> Optional[ConfigSnapshot]:
        """Load and apply a snapshot, unless an operation was launched meanwhile."""
        generation = self._generation
        try:
            snapshot = await load_snapshot(self.client)
        except StudioError as e:
            if generation == self._generation:
                self.load_error = e
            logger.warning("snapshot_load_failed", error=e.message, code=e.code)
            raise
        if generation != self._generation:
            # The newer operation reloads after its own mutation
            logger.info("stale_snapshot_dropped", generation=generation, current=self._generation)
            return None
        self.load_error = None
        self._apply_snapshot(snapshot)
        return snapshot

    def _apply_snapshot(self, snapshot: ConfigSnapshot) -> None:
        """Swap in a new snapshot; clean edit buffers follow it, dirty ones are kept."""
        self._snapshot = snapshot
        self._config_baseline = change_detector.render_config(snapshot.raw_config)
        if self._config_dirty:
            self._config_dirty = change_detector.dirty(self._config_baseline, self._config_text)
        else:
            self._config_text = self._config_baseline
        self._gate.check(self._config_text)
        self.registry.rebase(snapshot.models)

    async def _reload_after_mutation(self) -> None:
        # The mutation already happened; a failed reload only leaves the view stale
        try:
            await self._reload()
        except StudioError as e:
            logger.warning("reload_after_mutation_failed", error=e.message)

    async def _succeed_then_reload(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        clear_after: Optional[float] = None,
    ) -> OperationState:
        """Publish success, then reload and re-publish the unsaved-edits flag."""
        state = self._succeed(message, details, clear_after)
        generation = self._generation
        await self._reload_after_mutation()
        if generation != self._generation or self._state.phase is not Phase.SUCCESS:
            return state
        return self._publish_edits()

    # =========================================================================
    # Edit buffers
    # =========================================================================

    def edit_config_text(self, text: str) -> OperationState:
        """
        Replace the raw JSON edit buffer.

        Invalid JSON is accepted into the buffer; the validation error is
        kept on ``config_error`` and blocks saving.

        Raises:
            OperationBusyError: If an operation is in flight
        """
        self._ensure_idle("edit_config")
        self._config_text = text
        self._gate.check(text)
        self._config_dirty = change_detector.dirty(self._config_baseline, text)
        return self._publish_edits()

    def reset_config_edits(self) -> OperationState:
        """Discard the raw JSON edits and return to the snapshot's configuration."""
        self._ensure_idle("reset_config")
        self._config_text = self._config_baseline
        self._config_dirty = False
        self._gate.check(self._config_text)
        return self._publish_edits()

    def import_config(self, text: str) -> OperationState:
        """
        Load configuration text from an external file into the edit buffer.

        Raises:
            OperationBusyError: If an operation is in flight
            ConfigSyntaxError: If the text is not valid JSON (buffer unchanged)
        """
        self._ensure_idle("import_config")
        validate(text)
        logger.info("config_imported", size=len(text))
        return self.edit_config_text(text)

    def export_config(self) -> str:
        """The snapshot's configuration as pretty-printed JSON."""
        return change_detector.render_config(self.require_snapshot().raw_config)

    def patch_model(self, name: str, field: str, value: Any) -> ModelConfig:
        """
        Change one setting of one model in the edit buffer.

        Raises:
            OperationBusyError: If an operation is in flight
            ModelNotFoundError: If the model is unknown
            ValidationError: If the field or value is rejected
        """
        self._ensure_idle("patch_model")
        updated = self.registry.patch(name, field, value)
        self._publish_edits()
        return updated

    # =========================================================================
    # Intents
    # =========================================================================

    def change_backend(self, backend_id: Optional[str]) -> "asyncio.Task[OperationState]":
        """Select a backend (None or "auto" for auto-detect) and restart the service."""
        target = normalize_backend_id(backend_id)
        return self._launch(
            Operation.CHANGE_BACKEND,
            Phase.SAVING,
            "Updating backend selection...",
            partial(self._run_change_backend, target),
        )

    def reconfigure(self) -> "asyncio.Task[OperationState]":
        """Have the control plane regenerate its configuration from discovered models."""
        return self._launch(
            Operation.RECONFIGURE,
            Phase.RECONFIGURING,
            "Regenerating configuration...",
            self._run_reconfigure,
        )

    def restart(self) -> "asyncio.Task[OperationState]":
        """Restart the service with the current overrides."""
        return self._launch(
            Operation.RESTART,
            Phase.RESTARTING,
            RESTART_SCRIPT.opening,
            self._run_restart,
        )

    def save_config(self) -> "asyncio.Task[OperationState]":
        """
        Persist the raw JSON edit buffer.

        Raises:
            OperationBusyError: If an operation is in flight
            ConfigSyntaxError: If the buffer is not valid JSON (no remote call made)
        """
        text = self._validated_config_text(Operation.SAVE_CONFIG)
        return self._launch(
            Operation.SAVE_CONFIG,
            Phase.SAVING,
            "Saving configuration...",
            partial(self._run_save_config, text),
        )

    def save_config_and_restart(self) -> "asyncio.Task[OperationState]":
        """
        Persist the raw JSON edit buffer, then restart the service.

        Raises:
            OperationBusyError: If an operation is in flight
            ConfigSyntaxError: If the buffer is not valid JSON (no remote call made)
        """
        text = self._validated_config_text(Operation.SAVE_CONFIG_AND_RESTART)
        return self._launch(
            Operation.SAVE_CONFIG_AND_RESTART,
            Phase.SAVING,
            "Saving configuration...",
            partial(self._run_save_config_and_restart, text),
        )

    def save_model(self, name: str) -> "asyncio.Task[OperationState]":
        """Persist one model's buffered configuration."""
        return self._launch(
            Operation.SAVE_MODEL,
            Phase.SAVING,
            f"Saving configuration for {name}...",
            partial(self._run_save_model, name),
        )

    def save_all_models(self) -> "asyncio.Task[OperationState]":
        """Persist every model's buffered configuration in one call."""
        return self._launch(
            Operation.SAVE_ALL_MODELS,
            Phase.SAVING,
            "Saving all model configurations...",
            self._run_save_all_models,
        )

    # =========================================================================
    # Operation runners
    # =========================================================================

    async def _run_change_backend(self, backend_id: Optional[str]) -> OperationState:
        await self.selector.select(backend_id)
        self._begin_restart(CHANGE_BACKEND_SCRIPT.render(backend=backend_label(backend_id)))
        await self.client.restart_with_overrides()
        self._stop_script()
        shown = AUTO_DISPLAY_NAME if backend_id is None else backend_id
        return await self._succeed_then_reload(
            f"Backend changed to {shown} and service restarted!",
            {"backendId": backend_id},
        )

    async def _run_reconfigure(self) -> OperationState:
        result = await self.client.regenerate_config()
        return await self._succeed_then_reload(
            f"Configuration regenerated with {result.discovered_models} models",
            {"discoveredModels": result.discovered_models},
        )

    async def _run_restart(self) -> OperationState:
        self._play(RESTART_SCRIPT)
        await self.client.restart_with_overrides()
        self._stop_script()
        return await self._succeed_then_reload("Service restarted successfully!")

    async def _run_save_config(self, text: str) -> OperationState:
        result = await self.client.save_config_from_json(text)
        self._config_committed(text)

        message = "Configuration saved successfully!"
        recommendation = result.requires_restart
        restart_required = bool(recommendation and recommendation.required)
        details: dict[str, Any] = {"restartRequired": restart_required}
        if recommendation and restart_required:
            if recommendation.reason:
                message += f" {recommendation.reason}"
            details["restartReason"] = recommendation.reason
        return await self._succeed_then_reload(
            message,
            details,
            clear_after=RESTART_RECOMMENDED_DELAY if restart_required else None,
        )

    async def _run_save_config_and_restart(self, text: str) -> OperationState:
        await self.client.save_config_from_json(text)
        self._config_committed(text)
        self._begin_restart(SAVE_AND_RESTART_SCRIPT)
        await self.client.restart_with_overrides()
        self._stop_script()
        return await self._succeed_then_reload(
            "Configuration saved and service restarted successfully!"
        )

    async def _run_save_model(self, name: str) -> OperationState:
        record = self.registry.record(name)
        await self.client.save_model_configuration(name, record)
        if self.model_save_clears_all:
            self.registry.mark_all_saved()
        else:
            self.registry.mark_saved(name)
        return await self._succeed_then_reload(f"Configuration saved for {name}", {"model": name})

    async def _run_save_all_models(self) -> OperationState:
        records = self.registry.records()
        await self.client.save_all_model_configurations(records)
        self.registry.mark_all_saved()
        return await self._succeed_then_reload(
            "All model configurations saved successfully!",
            {"models": len(records)},
        )

    # =========================================================================
    # State machine plumbing
    # =========================================================================

    def _ensure_idle(self, intent: str) -> None:
        if self._refreshing:
            running = "refresh"
        elif self._state.phase.in_flight:
            running = self._operation.value if self._operation else self._state.phase.value
        else:
            return
        logger.info("intent_rejected_busy", intent=intent, running=running)
        raise OperationBusyError(
            f"Cannot {intent.replace('_', ' ')} while {running.replace('_', ' ')} is in progress",
            details={"intent": intent, "running": running},
        )

    def _validated_config_text(self, operation: Operation) -> str:
        self._ensure_idle(operation.value)
        text = self._config_text
        self._gate.require_valid(text)
        return text

    def _launch(
        self,
        operation: Operation,
        phase: Phase,
        message: str,
        runner: Callable[[], Awaitable[OperationState]],
    ) -> "asyncio.Task[OperationState]":
        self._ensure_idle(operation.value)
        loop = asyncio.get_running_loop()

        self._cancel_auto_clear()
        self._stop_script()
        self._generation += 1
        self._operation = operation
        logger.info("operation_started", operation=operation.value)
        self._transition(phase, message)

        task = loop.create_task(self._run(operation, runner))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        operation: Operation,
        runner: Callable[[], Awaitable[OperationState]],
    ) -> OperationState:
        generation = self._generation
        try:
            return await runner()
        except StudioError as e:
            return self._fail(e.message, {"code": e.code, **e.details})
        except Exception as e:
            logger.exception("operation_crashed", operation=operation.value)
            if generation != self._generation:
                # Crashed after its success was published and a newer operation took over
                return self._state
            return self._fail(str(e) or type(e).__name__, {"code": "INTERNAL_ERROR"})
        finally:
            if generation == self._generation:
                self._stop_script()

    def _succeed(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        clear_after: Optional[float] = None,
    ) -> OperationState:
        self._stop_script()
        operation = self._operation
        state = self._transition(Phase.SUCCESS, message, details)
        logger.info("operation_succeeded", operation=operation.value if operation else None)
        if clear_after is None:
            clear_after = self._clear_delays().success
        self._schedule_auto_clear(clear_after)
        return state

    def _fail(self, message: str, details: Optional[dict[str, Any]] = None) -> OperationState:
        self._stop_script()
        operation = self._operation
        state = self._transition(Phase.ERROR, message, details)
        logger.warning(
            "operation_failed",
            operation=operation.value if operation else None,
            error=message,
        )
        self._schedule_auto_clear(self._clear_delays().error)
        return state

    def _clear_delays(self) -> ClearDelays:
        if self._operation is None:
            return DEFAULT_CLEAR_DELAYS
        return AUTO_CLEAR_DELAYS[self._operation]

    def _config_committed(self, text: str) -> None:
        # The control plane accepted text; it is the new baseline until the reload lands
        self._config_baseline = text
        self._config_text = text
        self._config_dirty = False

    def _begin_restart(self, script: ProgressScript) -> None:
        self._transition(Phase.RESTARTING, script.opening)
        self._play(script)

    def _play(self, script: ProgressScript) -> None:
        generation = self._generation

        def show(message: str) -> None:
            if generation == self._generation and self._state.phase is Phase.RESTARTING:
                self._transition(Phase.RESTARTING, message)

        self._stop_script()
        self._player = ScriptPlayer(script.steps, show, time_scale=self.time_scale).start()

    def _stop_script(self) -> None:
        if self._player is not None:
            self._player.cancel()
            self._player = None

    def _schedule_auto_clear(self, delay: float) -> None:
        self._cancel_auto_clear()
        generation = self._generation
        self._clear_handle = asyncio.get_running_loop().call_later(
            delay * self.time_scale, self._auto_clear, generation
        )

    def _cancel_auto_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _auto_clear(self, generation: int) -> None:
        self._clear_handle = None
        if generation != self._generation or not self._state.phase.terminal:
            return
        self._operation = None
        self._transition(Phase.IDLE, "")

    async def aclose(self) -> None:
        """Cancel timers and any running operation (shutdown only)."""
        self._cancel_auto_clear()
        self._stop_script()
        for task in list(self._tasks):
            task.cancel()
        for future in list(self._notifications):
            future.cancel()
