"""
@file schemas.py
@brief Request and response bodies for the aggregation API

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class AggregateRequest(BaseModel):
    """Ad-hoc aggregation of one catchment polygon."""

    catchment: Dict[str, Any] = Field(..., description="GeoJSON Polygon or MultiPolygon geometry")
    srid: Optional[int] = Field(None, description="EPSG code of the catchment coordinates")
    statistic: Optional[str] = Field(None, description="Region attribute to average")


class RegionShare(BaseModel):
    region_id: int
    area: float
    weight: float
    statistic: float


class AggregateResponse(BaseModel):
    weighted_statistic: float
    coverage: float
    catchment_area: float
    regions: List[RegionShare]


class FacilityBatchRequest(BaseModel):
    """Batch aggregation over stored facilities."""

    statistic: Optional[str] = None
    fallback: Literal["voronoi", "buffer", "none"] = "voronoi"
    buffer_radius: Optional[float] = Field(None, gt=0)
    workers: Optional[int] = Field(None, ge=1)
