"""
ASGI entry point: the studio HTTP API with the status stream mounted in front.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from swapstudio import __version__
from swapstudio.api.exception_handlers import install_exception_handlers
from swapstudio.api.routes import register_routes
from swapstudio.client.control_plane import ControlPlaneClient
from swapstudio.core.config import settings
from swapstudio.core.errors import StudioError
from swapstudio.core.logging import get_logger, setup_logging
from swapstudio.services.orchestrator import OperationOrchestrator
from swapstudio.sockets.status import StatusEmitter, create_socket_io

logger = get_logger(__name__)

API_DESCRIPTION = """
Drives the control plane of a local model-swapping inference server:
backend selection, raw configuration edits, per-model settings and
service restarts.

Operations run one at a time and answer `202` with the status they started
in. A second operation requested meanwhile gets `409 OPERATION_BUSY`.
Status transitions are pushed as `studio:status` Socket.IO events to clients
that emitted `studio:join` on `/socket.io/`.

Failures use the envelope
`{"success": false, "error": {"code", "message", "details"}}`.
"""

OPENAPI_TAGS = [
    {"name": "studio", "description": "Backend, configuration and model settings operations"},
    {"name": "system", "description": "Health of the studio and its control plane"},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Sets up logging, wires the status stream and loads the first snapshot
    on startup. Cancels pending work and closes the control plane client
    on shutdown.
    """
    # Startup
    setup_logging()
    logger.info(
        "application_starting",
        version=__version__,
        debug=settings.DEBUG,
        control_plane=settings.CONTROL_PLANE_URL,
    )

    orchestrator: OperationOrchestrator = app.state.orchestrator
    unsubscribe = orchestrator.subscribe(app.state.status_emitter.emit_status)

    if settings.LOAD_ON_STARTUP:
        try:
            await orchestrator.refresh()
        except StudioError as e:
            # The panel can still come up and retry through /refresh
            logger.warning("initial_load_failed", error=e.message, code=e.code)

    yield

    # Shutdown
    logger.info("application_shutting_down")
    unsubscribe()
    await orchestrator.aclose()
    aclose = getattr(orchestrator.client, "aclose", None)
    if aclose is not None:
        await aclose()


def create_app(orchestrator: Optional[OperationOrchestrator] = None) -> FastAPI:
    """Build the HTTP app around ``orchestrator``, or one for the configured control plane."""
    app = FastAPI(
        title="swapstudio API",
        description=API_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
    )

    if orchestrator is None:
        orchestrator = OperationOrchestrator(ControlPlaneClient())
    app.state.orchestrator = orchestrator
    app.state.status_emitter = StatusEmitter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_exception_handlers(app)
    register_routes(app)

    return app


def create_socket_io_server(app: FastAPI) -> socketio.AsyncServer:
    """Socket.IO server that streams the status of ``app``'s orchestrator."""
    return create_socket_io(
        app.state.status_emitter,
        state_provider=lambda: app.state.orchestrator.state,
    )


def create_combined_app(
    orchestrator: Optional[OperationOrchestrator] = None,
) -> socketio.ASGIApp:
    """Mount Socket.IO in front of the HTTP app; non-socket traffic falls through."""
    fastapi_app = create_app(orchestrator)
    sio = create_socket_io_server(fastapi_app)

    fastapi_app.state.sio = sio

    return socketio.ASGIApp(sio, other_asgi_app=fastapi_app)


app = create_combined_app()


def run() -> None:
    """`swapstudio` console script."""
    import uvicorn

    uvicorn.run(
        "swapstudio.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
