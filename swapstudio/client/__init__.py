"""
Control plane client for swapstudio.
"""

from swapstudio.client.control_plane import ControlPlane, ControlPlaneClient

__all__ = ["ControlPlane", "ControlPlaneClient"]
