"""
Operation state published by the orchestrator.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class Phase(str, enum.Enum):
    """Phase of the orchestrator state machine."""

    IDLE = "idle"
    SAVING = "saving"
    RECONFIGURING = "reconfiguring"
    RESTARTING = "restarting"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def in_flight(self) -> bool:
        return self in IN_FLIGHT_PHASES

    @property
    def terminal(self) -> bool:
        return self in (Phase.SUCCESS, Phase.ERROR)


IN_FLIGHT_PHASES = frozenset({Phase.SAVING, Phase.RECONFIGURING, Phase.RESTARTING})


class Operation(str, enum.Enum):
    """The fixed set of operations the studio can run."""

    CHANGE_BACKEND = "change_backend"
    RECONFIGURE = "reconfigure"
    RESTART = "restart"
    SAVE_CONFIG = "save_config"
    SAVE_CONFIG_AND_RESTART = "save_config_and_restart"
    SAVE_MODEL = "save_model"
    SAVE_ALL_MODELS = "save_all_models"


@dataclass(frozen=True)
class OperationState:
    """
    One status update for the presentation layer.

    Attributes:
        phase: Current phase
        message: Human-readable status text
        has_unsaved_edits: Whether any edit buffer holds unsaved changes
        operation: Operation that produced this state, None when idle
        details: Result data of a finished operation (e.g. discovered model count)
    """

    phase: Phase = Phase.IDLE
    message: str = ""
    has_unsaved_edits: bool = False
    operation: Optional[Operation] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Wire form pushed to status subscribers."""
        return {
            "phase": self.phase.value,
            "message": self.message,
            "hasUnsavedEdits": self.has_unsaved_edits,
            "operation": self.operation.value if self.operation else None,
            "details": dict(self.details),
        }
