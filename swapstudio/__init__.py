"""
swapstudio - Backend Configuration Studio

Orchestrates configuration edits, backend switching and service restarts
for a local model-swapping inference server through its control plane.
"""

__version__ = "1.0.0"
__author__ = "swapstudio Team"
