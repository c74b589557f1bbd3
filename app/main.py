import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from loguru import logger

from api.responses import APIError, api_error_handler, error_response
from api.routes import zones
from core import state
from core.config import Settings
from core.state import SENTINEL_ZONE, ZoneRegistry
from services.zones_store import load_zones


def create_app(settings: Settings | None = None, registry: ZoneRegistry | None = None) -> FastAPI:
    settings = settings or Settings()
    registry = registry if registry is not None else state.registry

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- startup ---
        settings.zones_dir.mkdir(parents=True, exist_ok=True)
        loaded = 0
        for zone in load_zones(settings.zones_dir):
            if zone.name == SENTINEL_ZONE:
                logger.warning(f"Ignoring zone file for reserved name {SENTINEL_ZONE}")
                continue
            registry.upsert(zone.name, zone)
            loaded += 1
        logger.info(f"Loaded {loaded} zone(s) from {settings.zones_dir}")
        yield
        # --- shutdown ---
        logger.info("Control plane stopped serving")

    app = FastAPI(title="Zone Control Plane", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry

    app.add_exception_handler(APIError, api_error_handler)

    @app.middleware("http")
    async def write_timeout(request: Request, call_next):
        try:
            async with asyncio.timeout(settings.HTTP_WRITE_TIMEOUT):
                return await call_next(request)
        except TimeoutError:
            logger.warning(f"{request.method} {request.url.path} exceeded {settings.HTTP_WRITE_TIMEOUT}s")
            return error_response(503, "Request timed out")

    # Routers
    app.include_router(zones.router)

    return app


app = create_app()
