"""
Socket.IO status stream for swapstudio.

Pushes every orchestrator transition to connected control panel clients.
"""

from typing import Callable, Optional

import socketio
import structlog

from swapstudio.services.operation import OperationState

logger = structlog.get_logger()

STATUS_EVENT = "studio:status"

StateProvider = Callable[[], Optional[OperationState]]


def register_handlers(
    sio: socketio.AsyncServer,
    state_provider: Optional[StateProvider] = None,
) -> None:
    """
    Register Socket.IO event handlers.

    Args:
        sio: The Socket.IO async server instance
        state_provider: Returns the current status, sent to clients on join
    """

    @sio.event
    async def connect(sid: str, environ: dict) -> None:
        """Handle client connection."""
        logger.info("socket_connected", sid=sid)

    @sio.event
    async def disconnect(sid: str) -> None:
        """Handle client disconnection."""
        logger.info("socket_disconnected", sid=sid)

    @sio.on("studio:join")
    async def on_studio_join(sid: str) -> None:
        """Send the current status to a panel that just opened."""
        state = state_provider() if state_provider else None
        if state is not None:
            await sio.emit(STATUS_EVENT, state.to_payload(), to=sid)
        logger.info("studio_joined", sid=sid)


class StatusEmitter:
    """
    Emits orchestrator status events via Socket.IO.

    Subscribe ``emit_status`` to an OperationOrchestrator to forward its
    status stream.
    """

    def __init__(self, sio: Optional[socketio.AsyncServer] = None) -> None:
        """
        Initialize the status emitter.

        Args:
            sio: The Socket.IO async server instance. Can be None for testing.
        """
        self._sio = sio

    def set_sio(self, sio: socketio.AsyncServer) -> None:
        """Set the Socket.IO server instance."""
        self._sio = sio

    async def emit_status(self, state: OperationState) -> None:
        """
        Emit a status transition.

        Args:
            state: The orchestrator's new state
        """
        if self._sio is None:
            return

        await self._sio.emit(STATUS_EVENT, state.to_payload())


def create_socket_io(
    emitter: StatusEmitter,
    state_provider: Optional[StateProvider] = None,
) -> socketio.AsyncServer:
    """
    Create and configure the Socket.IO async server.

    Args:
        emitter: Emitter to bind to the new server
        state_provider: Returns the current status for joining clients

    Returns:
        Configured Socket.IO AsyncServer instance
    """
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*",
        logger=False,  # Use structlog instead
        engineio_logger=False,
    )

    register_handlers(sio, state_provider)
    emitter.set_sio(sio)

    return sio
