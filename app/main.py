"""FastAPI application entry point.

This module creates and configures the FastAPI application instance.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1 import api_router
from app.core.config import get_config
from app.core.container import container
from app.core.database import check_db_connection, close_db, init_db
from app.core.exceptions import (
    FeedSieveError,
    InvalidRuleError,
    LockError,
    RecordNotFoundError,
    ScopeResolutionError,
)
from app.core.logging import get_logger, setup_logging
from app.core.redis import check_redis_connection, close_redis

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events.

    Handles startup and shutdown events for the FastAPI application.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    config = get_config()
    engine = container.db_engine()
    # Startup
    logger.info("Starting FeedSieve application", env=config.app_env)

    # Initialize database (only in development with available DB)
    if config.is_development:
        try:
            if await check_db_connection(engine):
                await init_db(engine)
            else:
                logger.warning("Database connection not available, skipping initialization")
        except Exception as e:
            logger.warning(
                "Database initialization skipped", error=str(e), hint="Use migrations in production"
            )

    if config.reparse_lock_backend == "redis" and not await check_redis_connection(container.redis()):
        logger.warning("Redis unavailable, scope lock acquisition will fail until it recovers")

    yield

    # Shutdown
    logger.info("Shutting down FeedSieve application")
    await close_db(engine)
    await close_redis(container.redis())
    logger.info("Cleanup complete")


# Create FastAPI application
_config = get_config()
app = FastAPI(
    title=_config.app_name,
    description="Feed item filter rules, title parsers, previews and reparse sweeps",
    version="0.1.0",
    docs_url="/docs" if _config.is_development else None,
    redoc_url="/redoc" if _config.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_config.cors_origins,
    allow_credentials=_config.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Error handlers
# ============================================


def _error_response(status_code: int, exc: FeedSieveError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.to_dict()},
    )


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    """Unknown rule, parser or item id."""
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(ScopeResolutionError)
async def scope_resolution_handler(request: Request, exc: ScopeResolutionError) -> JSONResponse:
    """Referenced target does not exist; rejected before any computation."""
    logger.info("Scope target not found", **exc.context)
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(InvalidRuleError)
async def invalid_rule_handler(request: Request, exc: InvalidRuleError) -> JSONResponse:
    """Rule or parser definition rejected at creation time."""
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


@app.exception_handler(LockError)
async def lock_error_handler(request: Request, exc: LockError) -> JSONResponse:
    """Another sweep holds the scope for too long."""
    logger.warning("Scope lock unavailable", **exc.context)
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


app.include_router(api_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Health status
    """
    cfg = get_config()
    return {
        "status": "healthy",
        "app": cfg.app_name,
        "env": cfg.app_env,
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint.

    Returns:
        Welcome message
    """
    return {
        "message": "FeedSieve API",
        "version": "0.1.0",
        "docs": "/docs" if get_config().is_development else "disabled",
    }
