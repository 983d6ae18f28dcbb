"""
FastAPI Application Entry Point.

This is the main application file for the Order & Ledger Backend.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.config import settings
from backend.app.core.logging import configure_logging
from backend.app.core.observability import ObservabilityMiddleware
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base, get_db
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.product import Product
from backend.app.models.order import Order
from backend.app.models.transaction import Transaction
from backend.app.models.sequence_counter import SequenceCounter
from backend.app.models.notification import NotificationOutbox
from backend.app.models.dlq import DeadLetterQueue
from backend.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging.
    2. Creates database tables on startup.
    """
    configure_logging(settings.log_level)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Order placement, delivery tracking and sales/expense ledger",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Liveness plus a database round trip.

    The order engine cannot take orders without its database, so a failed
    ping reports ``degraded`` with HTTP 503.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check database ping failed")
        database = "unavailable"

    body = {
        "status": "healthy" if database == "ok" else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "database": database,
    }
    if database != "ok":
        return JSONResponse(status_code=503, content=body)
    return body


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to the Order & Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
