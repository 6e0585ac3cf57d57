"""
Noteweave Backend Application

FastAPI application entrypoint with async lifespan management.
Handles startup checks (database, Redis), domain error mapping and
graceful shutdown.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from noteweave.api.v1.embeddings import router as embeddings_router
from noteweave.api.v1.notes import router as notes_router
from noteweave.api.v1.search import router as search_router
from noteweave.core.config import settings
from noteweave.core.database import dispose_engine, get_engine
from noteweave.core.errors import NoteweaveError
from noteweave.core.logging import setup_logging
from noteweave.services.ai import check_embedding_dimension, get_embedding_provider
from noteweave.services.jobs import get_job_queue

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


async def wait_for_db(retries: int = 10, delay: int = 1) -> bool:
    """
    Wait for PostgreSQL to become available.

    Useful in containerized environments where the database may start
    after the application. Implements retry logic with linear delay.

    Args:
        retries: Maximum connection attempts.
        delay: Seconds between attempts.

    Returns:
        True if connection established, False if all retries exhausted.
    """
    engine = get_engine()
    for i in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Postgres connection established")
                return True
        except Exception as e:
            logger.warning("Waiting for Postgres (%d/%d)... Error: %s", i + 1, retries, e)
            await asyncio.sleep(delay)

    return False


async def check_redis() -> bool:
    """
    Verify Redis connectivity.

    Non-blocking check: the API runs without Redis, only the queued
    embedding dispatch mode needs it.
    """
    try:
        r = redis.from_url(settings.REDIS_URL, decode_responses=True)
        await r.ping()
        logger.info("Redis connection established (%s)", settings.REDIS_HOST)
        await r.aclose()
        return True
    except Exception as e:
        logger.error("Redis connection error: %s", e)
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Checks the embedding provider fits the vector column (blocks startup)
        - Validates database connectivity (required, blocks startup on failure)
        - Checks Redis connectivity (optional unless EMBEDDING_DISPATCH=redis)

    Shutdown:
        - Closes the job queue client and disposes the database engine
    """
    logger.info("Starting %s...", settings.PROJECT_NAME)
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    check_embedding_dimension(get_embedding_provider())

    if not await wait_for_db():
        logger.critical("Could not connect to Postgres. Shutting down.")
        raise RuntimeError("Database connection failed")

    if not await check_redis():
        if settings.EMBEDDING_DISPATCH == "redis":
            logger.warning("Redis not reachable - embedding jobs cannot be queued")
        else:
            logger.warning("Redis not reachable - continuing without it")

    yield  # Application runs here

    logger.info("Shutting down %s...", settings.PROJECT_NAME)
    if settings.EMBEDDING_DISPATCH == "redis":
        await get_job_queue().close()
    await dispose_engine()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(notes_router, prefix="/api/v1/notes", tags=["Notes"])
app.include_router(search_router, prefix="/api/v1/search", tags=["Search"])
app.include_router(embeddings_router, prefix="/api/v1/embeddings", tags=["Embeddings"])


@app.exception_handler(NoteweaveError)
async def noteweave_error_handler(request: Request, exc: NoteweaveError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    content: dict = {"error": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed parameters are client errors (400), like every other validation failure."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid parameters", "details": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns:
        Static health status.
    """
    return {
        "status": "ok",
        "service": "noteweave",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "embedding_provider": settings.EMBEDDING_PROVIDER,
        "embedding_dispatch": settings.EMBEDDING_DISPATCH,
    }
