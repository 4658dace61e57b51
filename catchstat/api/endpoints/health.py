"""
@file health.py
@brief Health check API endpoints
@details
Liveness, readiness and full status endpoints. Readiness requires a
reachable database with at least one statistical region loaded, since no
aggregation can succeed without regions.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from catchstat.core.health import HealthStatus, check_database, get_system_health

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """
    @brief Get system health status
    @details Returns 503 when the database is unavailable, 200 otherwise.
    """
    health = await get_system_health()
    status_code = 503 if health["status"] == HealthStatus.UNHEALTHY else 200
    return JSONResponse(status_code=status_code, content=health)


@router.get("/health/ready")
async def readiness_check():
    """
    @brief Readiness probe
    @details Ready once the database answers and regions are loaded.
    """
    database = await check_database()
    if database["status"] == HealthStatus.HEALTHY:
        return {"ready": True, "regions": database.get("regions", 0)}
    return JSONResponse(
        status_code=503,
        content={"ready": False, "reason": database["message"]}
    )


@router.get("/health/live")
async def liveness_check():
    """
    @brief Liveness probe
    @details Returns 200 as long as application is running.
    """
    return {"alive": True, "status": "Application is running"}
