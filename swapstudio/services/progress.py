"""
Scripted progress messages and status timers.

The control plane reports nothing while a restart runs, so the studio plays
a fixed script of messages on a timer to show that work is happening. The
script says nothing about real progress and is cancelled the moment the
remote call returns.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from swapstudio.services.operation import Operation

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProgressStep:
    """A message shown once the given number of seconds has elapsed."""

    offset: float
    message: str


@dataclass(frozen=True)
class ProgressScript:
    """Opening message plus timed follow-ups for a restart phase."""

    opening: str
    steps: tuple[ProgressStep, ...] = ()

    def render(self, **values: str) -> "ProgressScript":
        """Fill ``{placeholders}`` in every message."""
        return ProgressScript(
            opening=self.opening.format(**values),
            steps=tuple(
                ProgressStep(step.offset, step.message.format(**values))
                for step in self.steps
            ),
        )


CHANGE_BACKEND_SCRIPT = ProgressScript(
    opening="Stopping service...",
    steps=(
        ProgressStep(1.0, "Applying backend changes..."),
        ProgressStep(3.0, "Starting service with {backend} backend..."),
        ProgressStep(5.0, "Initializing service... (this may take a moment)"),
        ProgressStep(10.0, "Service startup in progress... (almost ready)"),
    ),
)

RESTART_SCRIPT = ProgressScript(
    opening="Stopping service...",
    steps=(
        ProgressStep(1.0, "Applying configuration..."),
        ProgressStep(3.0, "Starting service with new settings..."),
    ),
)

SAVE_AND_RESTART_SCRIPT = ProgressScript(
    opening="Configuration saved, restarting service...",
    steps=(
        ProgressStep(2.0, "Applying new configuration..."),
    ),
)


@dataclass(frozen=True)
class ClearDelays:
    """Seconds a terminal state stays visible before reverting to idle."""

    success: float
    error: float


AUTO_CLEAR_DELAYS: dict[Operation, ClearDelays] = {
    Operation.CHANGE_BACKEND: ClearDelays(success=3.0, error=5.0),
    Operation.RECONFIGURE: ClearDelays(success=2.0, error=3.0),
    Operation.RESTART: ClearDelays(success=2.0, error=3.0),
    Operation.SAVE_CONFIG: ClearDelays(success=2.0, error=5.0),
    Operation.SAVE_CONFIG_AND_RESTART: ClearDelays(success=3.0, error=5.0),
    Operation.SAVE_MODEL: ClearDelays(success=2.0, error=3.0),
    Operation.SAVE_ALL_MODELS: ClearDelays(success=2.0, error=3.0),
}

DEFAULT_CLEAR_DELAYS = ClearDelays(success=2.0, error=5.0)

# Saved, but the change only applies after a restart
RESTART_RECOMMENDED_DELAY = 5.0


class ScriptPlayer:
    """
    Plays the timed steps of a script as its own task.

    Usage:
        player = ScriptPlayer(script.steps, on_message, time_scale=1.0)
        player.start()
        await remote_call()
        player.cancel()
    """

    def __init__(
        self,
        steps: tuple[ProgressStep, ...],
        on_message: Callable[[str], None],
        time_scale: float = 1.0,
    ) -> None:
        self.steps = steps
        self.on_message = on_message
        self.time_scale = time_scale
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "ScriptPlayer":
        if self.steps and self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._play())
        return self

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _play(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        for step in self.steps:
            remaining = step.offset * self.time_scale - (loop.time() - started)
            await asyncio.sleep(max(remaining, 0))
            try:
                self.on_message(step.message)
            except Exception as e:
                logger.warning("progress_message_failed", error=str(e))
