"""
FastAPI application for the VSL platform core.

This is the main application that wires the inference pipeline and the
dictionary index synchronizer behind their endpoints and middleware.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog

from ..version import API_VERSION
from ..config import settings
from ..dictionary.synchronizer import create_index_synchronizer
from ..errors import ServiceError
from ..integration.inference_pipeline import create_inference_pipeline
from ..logging_config import setup_logging
from .routes import health, version, gesture, dictionary
from .middleware import (
    setup_logging_middleware,
    setup_error_handling_middleware,
)

# Setup logging on module import
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the pipeline and synchronizer, starts the sync workers and stops
    them on shutdown.
    """
    logger.info(
        "api_starting",
        version=API_VERSION,
        log_level=settings.log_level,
        sync_workers=settings.sync_workers if settings.enable_sync_workers else 0,
    )

    app.state.pipeline = create_inference_pipeline(settings)
    app.state.synchronizer = create_index_synchronizer(settings)

    try:
        app.state.synchronizer.ensure_index()
    except ServiceError as e:
        # Search falls back to the store until the index comes back
        logger.warning("search_index_not_ready", **e.failure.to_log_fields())

    if settings.enable_sync_workers:
        app.state.synchronizer.start()

    yield

    app.state.synchronizer.stop()
    app.state.pipeline.close()
    logger.info("api_stopped")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="VSL Platform - Gesture Pipeline & Dictionary Search",
        description="Gesture-to-text inference pipeline and eventually-consistent dictionary search",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom middleware (order matters - first added = outermost)
    setup_error_handling_middleware(app)
    setup_logging_middleware(app)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(version.router, prefix="/api/v1", tags=["Version"])
    app.include_router(gesture.router, tags=["Gesture"])
    app.include_router(dictionary.router, tags=["Dictionary"])

    return app


# Create app instance
app = create_app()


def main() -> None:
    """
    Entry point for running the API server directly.

    For development use. In production, use uvicorn directly.
    """
    import uvicorn

    uvicorn.run(
        "vsl_platform.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
