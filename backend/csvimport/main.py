"""
Main FastAPI application entry point.
"""

import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from csvimport.api import router as api_router
from csvimport.core.config import get_settings
from csvimport.core.database import Base, engine, get_db
from csvimport.core.logging import get_logger, setup_logging
from csvimport.core.middleware import RequestLoggingMiddleware

settings = get_settings()

# Set up logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(
        f"Starting {settings.APP_NAME}",
        extra={
            "extra_fields": {
                "environment": settings.ENVIRONMENT,
                "debug": settings.DEBUG,
                "batch_size": settings.DEFAULT_BATCH_SIZE,
            }
        },
    )

    # Importing the models registers their tables on Base.metadata
    import csvimport.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables verified/created")

    for directory in (settings.UPLOAD_DIR, settings.FILES_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)

    # Initialize Sentry if configured
    if settings.SENTRY_DSN:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.fastapi import FastApiIntegration
            from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

            sentry_sdk.init(
                dsn=settings.SENTRY_DSN,
                environment=settings.ENVIRONMENT,
                traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
                integrations=[
                    FastApiIntegration(transaction_style="endpoint"),
                    SqlalchemyIntegration(),
                ],
            )
            logger.info("Sentry initialized successfully")
        except ImportError:
            logger.warning("sentry-sdk not installed, error tracking disabled")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Batched, resumable import of pages from CSV files",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan,
)

# CORS middleware - must be added first (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and monitoring.
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health/ready")
def readiness_check():
    """Verify the database is reachable and the storage directories are writable."""
    db = next(get_db())
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "disconnected"
    finally:
        db.close()

    storage_status = {
        name: "writable" if os.access(path, os.W_OK) else "unavailable"
        for name, path in (("uploads", settings.UPLOAD_DIR), ("files", settings.FILES_DIR))
    }

    ready = db_status == "connected" and all(
        value == "writable" for value in storage_status.values()
    )

    return {
        "status": "ready" if ready else "not_ready",
        "checks": {
            "database": db_status,
            **storage_status,
        },
    }


# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)
