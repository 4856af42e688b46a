"""FastAPI application entry point."""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from flowdiff import config
from flowdiff.db.database import close_database, init_database
from flowdiff.platform.client import close_platform_client, init_platform_client

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    await init_database(config.DATABASE_PATH)
    init_platform_client()
    logger.info(f"Version store ready at {config.DATABASE_PATH} (max {config.MAX_VERSIONS} per workflow)")

    yield

    # Shutdown
    await close_platform_client()
    await close_database()


app = FastAPI(
    title="Flowdiff",
    description="Diff-based workflow mutation with validation, backups and rollback",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers after app is created to avoid circular imports
from flowdiff.api import versions, workflows  # noqa: E402

app.include_router(workflows.router, prefix="/api/v1", tags=["workflows"])
app.include_router(versions.router, prefix="/api/v1", tags=["versions"])
