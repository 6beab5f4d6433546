"""
Configuration state held by the studio: snapshot, edit buffers, and the
checks run against them.
"""

from swapstudio.state.backend_selector import BackendChoice, BackendSelector, SelectionMode
from swapstudio.state.model_registry import ModelConfigRegistry
from swapstudio.state.snapshot import ConfigSnapshot, load_snapshot
from swapstudio.state.validation import ValidationGate

__all__ = [
    "BackendChoice",
    "BackendSelector",
    "ConfigSnapshot",
    "ModelConfigRegistry",
    "SelectionMode",
    "ValidationGate",
    "load_snapshot",
]
