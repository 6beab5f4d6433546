"""HTTP routes of the studio: health probe plus the /api/studio surface."""

from fastapi import APIRouter, FastAPI

from swapstudio.api.routes.health import router as health_router
from swapstudio.api.routes.studio import router as studio_router

ROUTERS: tuple[APIRouter, ...] = (health_router, studio_router)


def register_routes(app: FastAPI) -> None:
    for router in ROUTERS:
        app.include_router(router)
