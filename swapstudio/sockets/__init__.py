"""
Socket.IO module for swapstudio.

Handles real-time WebSocket events for operation status.
"""

from swapstudio.sockets.status import (
    STATUS_EVENT,
    StatusEmitter,
    create_socket_io,
    register_handlers,
)

__all__ = [
    "STATUS_EVENT",
    "StatusEmitter",
    "create_socket_io",
    "register_handlers",
]
