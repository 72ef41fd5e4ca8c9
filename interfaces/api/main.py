"""Main FastAPI application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from application.ports.job_queue import JobQueue
from infrastructure.config import settings
from infrastructure.kafka.kafka_job_queue import KafkaJobQueue
from infrastructure.logging import setup_logging
from interfaces.api.routes.media_routes import router as media_router
from interfaces.api.routes.photo_routes import router as photo_router
from interfaces.dependencies import get_container

# Configure structured logging
setup_logging(component="api")

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:  # noqa: ARG001
    """Handle application startup and shutdown."""
    logger.info("app_starting", env=settings.app_env, blob_backend=settings.blob_backend)
    logger.info("app_ready")

    yield

    logger.info("app_shutting_down")
    # Only flush the producer if a request ever built the container
    if get_container.cache_info().currsize:
        job_queue = get_container()[JobQueue]
        if isinstance(job_queue, KafkaJobQueue):
            await job_queue.disconnect()
    logger.info("app_stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="PhotoStore API",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure properly for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(photo_router)
    app.include_router(media_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Create app instance
app = create_app()
