"""
@file database.py
@brief SQLAlchemy database engine and session configuration

@details
Centralized database connection management: PostgreSQL/PostGIS engine,
session factory, and the FastAPI session dependency.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see models.region for ORM models
@see db.seed for database initialization
"""

from fastapi import HTTPException
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from catchstat.core.config import DATABASE_URL

## @brief SQLAlchemy engine instance (connections are opened lazily)
engine = create_engine(DATABASE_URL, pool_pre_ping=True)

## @brief Session factory with explicit transaction control
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    @brief FastAPI dependency for database session injection

    @details
    Provides a database session for a single request lifecycle and closes it
    afterwards. Returns 503 Service Unavailable if the database is unreachable.

    @code{.python}
    @router.get("/regions")
    def get_regions(db: Session = Depends(get_db)):
        return db.query(StatisticalRegion).all()
    @endcode

    @throws HTTPException with status_code=503 if database connection fails
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except OperationalError:
        db.close()
        raise HTTPException(
            status_code=503,
            detail="Database connection unavailable. System is in maintenance mode."
        )
    try:
        yield db
    finally:
        db.close()
