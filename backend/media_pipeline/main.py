# backend/media_pipeline/main.py
"""
FastAPI application entry point for the media pipeline.

This file should ONLY handle HTTP wiring. Derivative generation lives in
services/ and is reached through the PipelineOrchestrator on app.state.
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .config import Settings, get_settings
from .enums import LogEmoji, LoggerName, LogSource
from .routers import event_routers as events
from .routers import image_proxy_routers as images
from .routers import media_routers as media
from .services.logger import configure_logging, get_service_logger
from .services.pipeline import PipelineOrchestrator, create_media_pipeline

logger = get_service_logger(LoggerName.SYSTEM, LogSource.SYSTEM)


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[PipelineOrchestrator] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Pipeline settings (process-wide settings if omitted)
        pipeline: Pre-built orchestrator; built from settings at startup if omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Handle application startup and shutdown"""
        configure_logging(settings.log_level)
        if getattr(_app.state, "pipeline", None) is None:
            _app.state.pipeline = create_media_pipeline(settings)

        logger.info(
            "Starting media pipeline API",
            extra_context={"environment": settings.environment},
            emoji=LogEmoji.STARTUP,
        )

        yield

        logger.info("Shutting down media pipeline API")
        transform_cache = _app.state.pipeline.transform_cache
        if transform_cache is not None:
            transform_cache.shutdown(wait_for_writes=True)

    app = FastAPI(
        title="Media Pipeline API",
        description="Derivative generation and on-demand image transforms",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    app.include_router(images.router)
    app.include_router(media.router)
    app.include_router(events.router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "environment": settings.environment}

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
