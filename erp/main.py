"""
FastAPI main application for the ERP inventory service.

To run: uvicorn erp.main:app --reload
"""
import logging
import time
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from erp.core.config import settings
from erp.core.database import get_engine, init_db, close_db, check_db_connection
from erp.api import api_router
from erp.error_handlers import register_exception_handlers
from erp.logging_config import setup_logging, get_logger
from erp.middleware import RequestLoggingMiddleware, limiter, rate_limit_exceeded_handler

setup_logging(
    log_level=settings.log_level,
    log_file=settings.log_file,
    max_bytes=settings.log_max_bytes,
    backup_count=settings.log_backup_count,
    log_to_file=settings.log_to_file,
)
logger = get_logger("main")

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Any startup failure (e.g. no DATABASE_URL) is fatal: it is logged,
    handlers are flushed and the exception propagates so the process exits.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")
    try:
        get_engine()
        if settings.auto_create_tables:
            # Development only - use Alembic migrations otherwise
            logger.info("Creating database tables...")
            await init_db()
    except Exception:
        logger.critical("Application startup failed", exc_info=True)
        logging.shutdown()
        raise

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await close_db()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="ERP inventory for imported electronics - products, stock, pricing & margins, reports",
    docs_url="/swagger",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Request logging
app.add_middleware(RequestLoggingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router)


@app.get("/health", tags=["System"])
async def health():
    """Health check endpoint."""
    database_ok = await check_db_connection()
    return {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "uptime": round(time.monotonic() - STARTED_AT, 2),
        "version": settings.app_version,
    }


@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"{settings.app_name} is running",
        "version": settings.app_version,
        "environment": settings.environment,
        "documentation": "/swagger",
        "endpoints": {
            "products": "/api/products",
            "references": "/api/references",
            "health": "/health",
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": "running",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "erp.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
