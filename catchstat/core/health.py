"""
@file health.py
@brief System health checks and status monitoring

@details
Provides status checks for:
- PostgreSQL/PostGIS connectivity
- Statistical region data availability
- Redis cache connectivity

The database is critical; an empty region table or a missing cache leaves
the service running in degraded mode.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
from typing import Dict, Any

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from catchstat.core.cache import cache
from catchstat.db.database import SessionLocal

logger = logging.getLogger(__name__)


class HealthStatus:
    """Health status indicator for system components"""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


async def check_database() -> Dict[str, Any]:
    """
    @brief Check PostgreSQL connectivity and region data

    @return Dict with status, message and region count
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        count = db.execute(text("SELECT COUNT(*) FROM statistical_regions")).scalar()
    except OperationalError as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": HealthStatus.UNHEALTHY,
            "message": "PostgreSQL database is unavailable",
            "component": "database",
            "error": str(e)
        }
    except Exception as e:
        logger.error(f"Unexpected database health check error: {e}")
        return {
            "status": HealthStatus.DEGRADED,
            "message": "Database health check encountered an error",
            "component": "database",
            "error": str(e)
        }
    finally:
        db.close()

    if not count:
        return {
            "status": HealthStatus.DEGRADED,
            "message": "No statistical regions loaded",
            "component": "database",
            "regions": 0
        }
    return {
        "status": HealthStatus.HEALTHY,
        "message": "PostgreSQL database is healthy",
        "component": "database",
        "regions": count
    }


async def check_cache() -> Dict[str, Any]:
    """
    @brief Check Redis cache connectivity
    @details Redis is optional - degraded status if unavailable.
    """
    if not cache.client:
        return {
            "status": HealthStatus.DEGRADED,
            "message": "Redis cache is not initialized",
            "component": "cache"
        }
    try:
        await cache.client.ping()
        return {
            "status": HealthStatus.HEALTHY,
            "message": "Redis cache is healthy",
            "component": "cache"
        }
    except Exception as e:
        logger.warning(f"Cache health check failed: {e}")
        return {
            "status": HealthStatus.DEGRADED,
            "message": "Redis cache is unavailable (running in degraded mode)",
            "component": "cache",
            "error": str(e)
        }


async def get_system_health() -> Dict[str, Any]:
    """
    @brief Combine component checks into an overall status
    @details
    - HEALTHY: All components operational
    - DEGRADED: Database reachable, but no regions or no cache
    - UNHEALTHY: Database unavailable
    """
    db_status = await check_database()
    cache_status = await check_cache()

    statuses = {db_status["status"], cache_status["status"]}
    if db_status["status"] == HealthStatus.UNHEALTHY:
        overall_status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses or HealthStatus.UNHEALTHY in statuses:
        overall_status = HealthStatus.DEGRADED
    else:
        overall_status = HealthStatus.HEALTHY

    return {
        "status": overall_status,
        "components": {
            "database": db_status,
            "cache": cache_status
        },
        "message": get_status_message(overall_status)
    }


def get_status_message(status: str) -> str:
    """Get human-readable status message"""
    messages = {
        HealthStatus.HEALTHY: "System is operational",
        HealthStatus.DEGRADED: "System is running with reduced functionality",
        HealthStatus.UNHEALTHY: "System is in maintenance mode (database unavailable)"
    }
    return messages.get(status, "Unknown status")
