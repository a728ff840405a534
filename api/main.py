"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, models
from core.config import Settings, settings
from core.exceptions import ModelError
from core.factory import create_factory_from_settings
from services.model_manager import ModelManager

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


async def _sync_once(manager: ModelManager, reason: str) -> None:
    try:
        report = await manager.sync()
        logger.info(
            "%s sync finished: %d created, %d removed",
            reason,
            len(report.created),
            len(report.removed),
        )
    except ModelError as e:
        logger.warning("%s sync failed: %s", reason, e)


async def _periodic_sync(manager: ModelManager, interval: float) -> None:
    """Sync the catalog every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        await _sync_once(manager, "Periodic")


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Build the application. The lifespan wires the services onto ``app.state``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        app_settings.ensure_directories()
        factory = create_factory_from_settings(app_settings)
        db = await factory.create_database_adapter()
        gateway = factory.create_remote_gateway()
        manager = ModelManager.create(
            db,
            gateway,
            download_timeout=app_settings.MODEL_DOWNLOAD_TIMEOUT,
            cache_ttl_hours=app_settings.AVAILABLE_MODELS_CACHE_TTL_HOURS,
            cache_retry_minutes=app_settings.AVAILABLE_MODELS_RETRY_MINUTES,
        )
        app.state.db = db
        app.state.gateway = gateway
        app.state.model_manager = manager

        if app_settings.SYNC_ON_STARTUP:
            await _sync_once(manager, "Startup")

        sync_task: asyncio.Task | None = None
        if app_settings.SYNC_INTERVAL_SECONDS > 0:
            sync_task = asyncio.create_task(
                _periodic_sync(manager, app_settings.SYNC_INTERVAL_SECONDS)
            )

        yield

        # Shutdown
        if sync_task is not None:
            sync_task.cancel()
            await asyncio.gather(sync_task, return_exceptions=True)
        await manager.shutdown()
        await gateway.close()
        await db.close()

    app = FastAPI(
        title="ModelHub API",
        description="Model lifecycle backend for a local Ollama server",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    # CORS - wide open. The API binds to 127.0.0.1 by default.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(health.router)
    app.include_router(models.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "ModelHub API",
            "version": APP_VERSION,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
