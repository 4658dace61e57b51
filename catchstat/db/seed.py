"""
@file seed.py
@brief Database initialization and seeding on application startup

@details
Manages the database lifecycle:
- Connection checking with retry logic
- PostGIS extension and table creation
- Region (and facility) ETL when the tables are empty
- Idempotent initialization (safe to call multiple times)

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see etl.ingest_regions for the ETL pipeline
@see db.database for engine configuration
"""

import logging
import os
import time

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError

from catchstat.core.config import FACILITIES_PATH, REGIONS_PATH

## @brief Module logger for startup diagnostics
logger = logging.getLogger(__name__)


def wait_for_database(engine, max_retries: int = 30, retry_delay: int = 2) -> bool:
    """
    @brief Wait for the database to accept connections

    @details
    Useful for containerized deployments where PostGIS may start after the app.

    @param engine SQLAlchemy Engine instance
    @param max_retries Maximum connection attempts
    @param retry_delay Delay between attempts in seconds
    @return True if the database answered, False if max_retries was exceeded
    """
    retries = 0
    while retries < max_retries:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("✓ Database connection established successfully")
            return True
        except OperationalError as e:
            retries += 1
            logger.warning(f"Database not ready (attempt {retries}/{max_retries}): {str(e)[:100]}")
            if retries < max_retries:
                time.sleep(retry_delay)

    logger.error(f"Failed to connect to database after {max_retries} attempts")
    return False


def table_row_count(engine, table: str) -> int:
    """Row count of ``table``, 0 if it does not exist yet."""
    if table not in inspect(engine).get_table_names():
        return 0
    with engine.connect() as conn:
        return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar() or 0


def create_schema(engine) -> None:
    """
    @brief Enable PostGIS and create all ORM tables
    """
    # Register models on Base.metadata
    from catchstat.db.base import Base
    from catchstat.models import facility, region  # noqa: F401

    with engine.begin() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
    Base.metadata.create_all(bind=engine)
    logger.info("✓ Tables created/verified")


def seed_database(engine) -> bool:
    """
    @brief Run the ETL for every empty table whose source file exists

    @return False only if an ETL run failed
    """
    from catchstat.etl.ingest_regions import run_etl, run_facility_etl

    regions = table_row_count(engine, "statistical_regions")
    if regions:
        logger.info(f"✓ Database already seeded with {regions} statistical regions")
    elif os.path.exists(REGIONS_PATH):
        logger.info("statistical_regions is empty - running region ETL")
        if not run_etl(REGIONS_PATH, engine=engine):
            return False
    else:
        logger.warning(f"No regions loaded and {REGIONS_PATH} not found; aggregation will fail until seeded")

    if not table_row_count(engine, "facilities") and os.path.exists(FACILITIES_PATH):
        logger.info("facilities is empty - running facility ETL")
        if not run_facility_etl(FACILITIES_PATH, engine=engine):
            return False

    return True


def initialize_database(engine=None, max_retries: int = 1) -> bool:
    """
    @brief Main entry point for database initialization on app startup

    @details
    1. Wait for PostgreSQL to be available
    2. Enable PostGIS and create tables
    3. Seed regions and facilities if their tables are empty

    The application keeps running if any step fails; the health endpoints
    report the degraded state.

    @return True if all steps succeeded
    """
    logger.info("Starting database initialization...")
    if engine is None:
        from catchstat.db.database import engine

    if not wait_for_database(engine, max_retries=max_retries, retry_delay=1):
        logger.error("Could not establish database connection - proceeding anyway")
        return False

    try:
        create_schema(engine)
    except OperationalError as e:
        logger.error(f"Error creating tables: {e}", exc_info=True)
        return False

    if not seed_database(engine):
        logger.error("Database seeding failed - application may not work correctly")
        return False

    logger.info("✓ Database initialization completed successfully")
    return True
