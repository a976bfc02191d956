"""FastAPI application exposing the media archive."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from media_archive.api.middleware import CorrelationMiddleware
from media_archive.api.routers import archive, health
from media_archive.lib.config_manager import config
from media_archive.lib.logging_config import setup_logging
from media_archive.services.archive import ArchiveContext, create_archive_context

logger = logging.getLogger(__name__)

API_TITLE = "Media Archive API"
API_VERSION = "0.1.0"

# CORS configuration for the download UI
CORS_ORIGINS = [
    "http://localhost:5173",    # Vite dev server
    "http://127.0.0.1:5173",
    "http://localhost:8000",
    "*",
]


def create_app(
    context: Optional[ArchiveContext] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the application.

    Args:
        context: Archive context to serve; created from settings on startup
            when omitted
        configure_logging: Install the structured JSON log handler

    Returns:
        FastAPI app; the archive context is loaded in its lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logging(config.get("SERVICE_NAME"), config.get("LOG_LEVEL"))

        archive_context = context or create_archive_context()
        await archive_context.load()
        app.state.archive = archive_context
        logger.info(f"{API_TITLE} {API_VERSION} started")
        yield
        logger.info(f"{API_TITLE} shutting down")

    app = FastAPI(
        title=API_TITLE,
        description="Archive of fetched media files with a browsable catalog",
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationMiddleware)

    # Include routers
    app.include_router(health.router)
    app.include_router(archive.router)

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "archive_config": "GET /archive/config",
                "archive_config_update": "PUT /archive/config",
                "archive_service_dir": "PUT /archive/config/services/{service}",
                "archive_downloads": "GET /archive/downloads?service=&limit=&cursor=",
                "archive_entry": "GET /archive/entries/{id}",
                "archive_file": "GET /archive/file/{id}",
            },
        }

    return app


app = create_app()


def run():
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=config.get("API_HOST"), port=config.get("API_PORT"))


if __name__ == "__main__":
    run()
