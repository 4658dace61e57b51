"""
@file main.py
@brief FastAPI application factory.
@details
Initializes the Catchstat FastAPI application with:
- Logging configuration
- Database initialization
- Redis cache connection
- Router registration (API, Health)
- Exception handlers for domain and database errors

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException

from catchstat.api import routes
from catchstat.api.endpoints import health
from catchstat.core import exceptions
from catchstat.core.cache import cache
from catchstat.core.logging import setup_logging
from catchstat.db.seed import initialize_database

# Configure logging
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    @brief Application lifecycle manager
    @details
    Startup: database initialization and Redis connection.
    Shutdown: Redis disconnect.
    """
    logger.info("=" * 60)
    logger.info("Starting Catchstat API...")
    logger.info("=" * 60)

    try:
        if initialize_database():
            logger.info("✓ Database initialization completed")
        else:
            logger.warning("⚠ Database initialization encountered issues")
    except Exception as e:
        logger.error(f"✗ Database initialization failed: {e}", exc_info=True)

    await cache.connect()

    yield

    await cache.close()
    logger.info("Catchstat API shutdown completed")


## @brief FastAPI application instance
app = FastAPI(
    title="Catchstat API - Catchment-weighted regional statistics",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url=None
)

app.include_router(health.router)
app.include_router(routes.router)

app.add_exception_handler(exceptions.CatchstatError, exceptions.catchstat_exception_handler)
app.add_exception_handler(HTTPException, exceptions.http_exception_handler)
app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)
app.add_exception_handler(OperationalError, exceptions.database_exception_handler)
app.add_exception_handler(Exception, exceptions.general_exception_handler)
