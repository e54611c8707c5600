from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from streambridge.api.router import api_router
from streambridge.api.routers.health import router as health_router
from streambridge.core.logging import configure_logging
from streambridge.core.settings import Settings, get_settings
from streambridge.services.stream_registry import StreamRegistry

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, registry: StreamRegistry | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.effective_log_level, bridge_diagnostics=settings.bridge_diagnostics)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("starting stream bridge service", extra={"app_env": settings.app_env})
        app.state.settings = settings
        app.state.stream_registry = registry if registry is not None else StreamRegistry()
        try:
            yield
        finally:
            await app.state.stream_registry.aclose()
            logger.info("stream bridge service shutdown complete")

    app = FastAPI(
        title="Stream Bridge",
        version="0.1.0",
        docs_url="/docs" if settings.enable_swagger else None,
        redoc_url="/redoc" if settings.enable_swagger else None,
        openapi_url="/openapi.json" if settings.enable_swagger else None,
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
