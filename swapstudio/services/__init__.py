"""
Service layer for swapstudio.

The orchestrator sequences control plane calls and owns the studio state.
"""

from swapstudio.services.operation import Operation, OperationState, Phase
from swapstudio.services.orchestrator import OperationOrchestrator

__all__ = ["Operation", "OperationOrchestrator", "OperationState", "Phase"]
