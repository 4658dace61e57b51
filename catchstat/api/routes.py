"""
@file routes.py
@brief FastAPI API endpoint definitions for the Catchstat backend

@details
Provides RESTful endpoints for:
- Statistical region export (GeoJSON)
- Ad-hoc weighted aggregation of a catchment polygon
- Batch aggregation over stored facilities
- Facility result listing

Domain errors (no overlap, CRS mismatch, invalid geometry) propagate to the
exception handlers registered in main.py.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.aggregation for the weighted mean
@see services.pipeline for the facility batch
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from geoalchemy2.shape import to_shape
from shapely.errors import ShapelyError
from shapely.geometry import mapping, shape
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from catchstat.api.schemas import AggregateRequest, AggregateResponse, FacilityBatchRequest, RegionShare
from catchstat.core.cache import cache, digest, make_key
from catchstat.core.exceptions import GeometryError
from catchstat.db.database import get_db
from catchstat.models.facility import Facility
from catchstat.models.records import Catchment
from catchstat.models.region import StatisticalRegion
from catchstat.services.aggregation import AggregationService, weighted_average
from catchstat.services.intersection import repair_geometry
from catchstat.services.pipeline import run_facility_batch
from catchstat.services.repository import load_geometry_store, region_version

## @brief FastAPI router instance for API endpoints
router = APIRouter()

logger = logging.getLogger(__name__)


def parse_geometry(payload: dict):
    """
    @brief GeoJSON geometry dict -> shapely geometry
    @throws GeometryError for malformed GeoJSON
    """
    try:
        return shape(payload)
    except (ShapelyError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise GeometryError(f"Invalid GeoJSON geometry: {e}") from e


def _json_number(value):
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return value


@router.get("/regions")
async def get_regions(db: Session = Depends(get_db)):
    """
    @brief Statistical regions as a GeoJSON FeatureCollection

    @details
    Cached in Redis; regions only change through the ETL.
    """
    cache_key = make_key("api", "regions")
    cached = await cache.get(cache_key)
    if cached:
        return cached

    rows = db.query(StatisticalRegion).order_by(StatisticalRegion.id).all()
    features = [
        {
            "type": "Feature",
            "geometry": mapping(to_shape(row.geom)),
            "properties": {
                "id": row.id,
                "name": row.name,
                "statistic": _json_number(row.statistic),
                "attributes": row.attributes or {},
            },
        }
        for row in rows
    ]
    result = {"type": "FeatureCollection", "features": features, "count": len(features)}

    await cache.set(cache_key, result)
    return result


@router.post("/aggregate", response_model=AggregateResponse)
async def aggregate(request: AggregateRequest, db: Session = Depends(get_db)):
    """
    @brief Area-weighted mean of the region statistic over one catchment

    @details
    **Algorithm:**
    1. Parse the GeoJSON catchment and tag it with ``srid`` (if given)
    2. Load the geometry store (optionally averaging another attribute)
    3. Intersect, drop slivers, normalise weights over the covered area
    4. Return the weighted mean with the per-region breakdown

    Responses are cached by a digest of the request body together with the
    region table fingerprint, so a region reload yields fresh answers.

    @throws NoOverlapError (404) if the catchment overlaps no region
    @throws CRSMismatchError (422) if ``srid`` differs from the region CRS
    @throws GeometryError (422) for malformed or unrepairable catchments
    """
    cache_key = make_key("api", "aggregate", region_version(db), digest(request.model_dump()))
    cached = await cache.get(cache_key)
    if cached:
        return cached

    geometry = parse_geometry(request.catchment)
    catchment = Catchment(geometry, crs=request.srid)

    store = load_geometry_store(db, request.statistic)
    records = AggregationService(store).intersections(catchment)
    catchment_area = repair_geometry(geometry, "catchment").area
    covered = math.fsum(r.area for r in records)

    result = AggregateResponse(
        weighted_statistic=weighted_average(records),
        coverage=covered / catchment_area,
        catchment_area=catchment_area,
        regions=[
            RegionShare(region_id=r.region_id, area=r.area, weight=r.weight, statistic=r.statistic)
            for r in records
        ],
    ).model_dump()

    await cache.set(cache_key, result)
    return result


@router.post("/facilities/aggregate")
async def aggregate_facilities(request: Optional[FacilityBatchRequest] = None,
                               db: Session = Depends(get_db)):
    """
    @brief Batch aggregation over every stored facility

    @details
    Facilities without an authoritative catchment get a Voronoi cell (or a
    buffer) inside the study area. Results, the containing-region baseline
    and the outcome are written back to each facility.

    @return Outcome counts, descriptive statistics of computed values and
            the facilities that could not be linked
    """
    request = request or FacilityBatchRequest()
    if request.fallback == "buffer" and request.buffer_radius is None:
        raise HTTPException(status_code=422, detail="buffer_radius is required for the buffer fallback")

    options = {"statistic": request.statistic, "fallback": request.fallback,
               "buffer_radius": request.buffer_radius}
    if request.workers:
        options["workers"] = request.workers

    logger.info(f"Received facility batch request: {options}")
    run = await run_in_threadpool(run_facility_batch, db, **options)
    await cache.invalidate("api", "facilities")
    return run.summary()


@router.get("/facilities")
async def get_facilities(db: Session = Depends(get_db)):
    """
    @brief Facilities with their weighted and baseline statistics
    """
    cache_key = make_key("api", "facilities")
    cached = await cache.get(cache_key)
    if cached:
        return cached

    rows = db.query(Facility).order_by(Facility.id).all()
    facilities = [
        {
            "id": row.id,
            "name": row.name,
            "category": row.category,
            "weighted_statistic": _json_number(row.weighted_statistic),
            "baseline_statistic": _json_number(row.baseline_statistic),
            "outcome": row.outcome,
        }
        for row in rows
    ]
    result = {"facilities": facilities, "count": len(facilities)}

    await cache.set(cache_key, result)
    return result
