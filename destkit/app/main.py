"""
destkit - Destination Actions Runtime

FastAPI application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI

from destkit import __version__
from destkit.app.dependencies import get_registry
from destkit.app.error_handlers import register_error_handlers
from destkit.app.routes import router
from destkit.config import get_settings
from destkit.destination import DestinationRegistry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load destinations at startup so a bad module fails fast."""
    logger.info("Loading destinations...")
    try:
        registry = get_registry()
        logger.info(f"Loaded destinations: {registry.list_names()}")
    except Exception as e:
        logger.error(f"Failed to load destinations: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down destkit")


def create_app() -> FastAPI:
    app = FastAPI(
        title="destkit",
        description="Routes analytics events to partner destination actions",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health", tags=["health"])
    async def health_check(registry: DestinationRegistry = Depends(get_registry)) -> dict[str, Any]:
        return {
            "status": "healthy",
            "service": settings.service_name,
            "environment": settings.environment,
            "version": __version__,
            "destinations": registry.list_names(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "destkit.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
