"""VectorQueue main application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vectorqueue import __version__
from vectorqueue.api import router
from vectorqueue.api.deps import validate_auth_config
from vectorqueue.config import settings
from vectorqueue.db import base as db_base
from vectorqueue.runtime import build_vector_queue
from vectorqueue.tasks.sweep import start_retention_sweep, stop_retention_sweep

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("vectorqueue")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting VectorQueue server...")
    logger.info(f"Environment: {settings.env.value}")

    # Validate authentication configuration (fail fast if insecure)
    validate_auth_config()

    if settings.embedding_timeout_seconds >= settings.lease_window_seconds:
        logger.warning(
            f"Embedding timeout ({settings.embedding_timeout_seconds}s) is not shorter than "
            f"the lease window ({settings.lease_window_seconds}s); slow calls may be "
            f"processed twice"
        )

    await db_base.init_db()
    logger.info("Database initialized")

    queue = build_vector_queue(db_base.async_session_factory, settings)
    app.state.vector_queue = queue

    # Pick up work left behind by a previous run
    queue.trigger()
    logger.info(f"Vector queue started (max in flight: {settings.vector_max_process})")

    if settings.retention_sweep_enabled:
        await start_retention_sweep(db_base.async_session_factory)
        logger.info("Retention sweep task started")

    yield

    logger.info("Shutting down VectorQueue server...")
    await stop_retention_sweep()
    await queue.shutdown()
    await db_base.close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title="VectorQueue",
    description="Durable training queue turning pushed records into embeddings",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-API-Key", "X-Team-ID", "X-Member-ID"],
)

app.include_router(router)


def main():
    """Entry point for the application."""
    uvicorn.run(
        "vectorqueue.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
