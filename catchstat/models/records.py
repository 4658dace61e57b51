"""
In-Memory Aggregation Records

This module defines the plain records exchanged by the aggregation core.
They are independent of the database and of any tabular container so that
each aggregation is a pure function over a catchment and a geometry store.

Records:
- Region: statistical region polygon with its statistic
- Catchment: area of influence of one point of interest
- PointOfInterest: facility location with a categorical attribute
- IntersectionRecord: one region's share of a catchment (ephemeral)
- AggregationResult: per-POI outcome of a batch run

Every geometry-bearing record carries its CRS so coordinate-system identity
cannot be lost between pipeline stages.

Author: Catchstat Project
License: AGPL-3.0
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from pyproj import CRS
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry

from catchstat.services.crs import normalize_crs


@dataclass(frozen=True)
class Region:
    """
    Statistical region, immutable once loaded.

    Attributes:
        id (int): Unique region identifier
        geometry (BaseGeometry): Polygon or MultiPolygon, possibly with holes
        statistic (float): Value averaged by the aggregator
        crs (CRS): Coordinate system of ``geometry`` (None if undeclared)
        attributes (Mapping[str, float]): Further numeric attributes
    """

    id: int
    geometry: BaseGeometry = field(compare=False, repr=False)
    statistic: float
    crs: Optional[CRS] = None
    attributes: Mapping[str, float] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "crs", normalize_crs(self.crs))
        object.__setattr__(self, "statistic", float(self.statistic))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def area(self) -> float:
        return self.geometry.area


@dataclass(frozen=True)
class Catchment:
    """
    Catchment polygon of one point of interest.

    Attributes:
        geometry (BaseGeometry): Polygon or MultiPolygon
        crs (CRS): Coordinate system of ``geometry`` (None if undeclared)
        id (int): Optional identifier of the source catchment
    """

    geometry: BaseGeometry = field(compare=False, repr=False)
    crs: Optional[CRS] = None
    id: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "crs", normalize_crs(self.crs))

    @property
    def area(self) -> float:
        return self.geometry.area


@dataclass(frozen=True)
class PointOfInterest:
    """
    Facility location.

    Attributes:
        id (int): Unique POI identifier
        category (str): Categorical attribute, e.g. ownership class
        point (Point): Location in the shared CRS
        crs (CRS): Coordinate system of ``point``
    """

    id: int
    category: str
    point: Point = field(compare=False, repr=False)
    crs: Optional[CRS] = None

    def __post_init__(self):
        object.__setattr__(self, "crs", normalize_crs(self.crs))


@dataclass(frozen=True)
class IntersectionRecord:
    """Overlap of one region with one catchment, with its normalised weight."""

    region_id: int
    geometry: BaseGeometry = field(compare=False, repr=False)
    area: float
    statistic: float
    weight: float = 0.0


class Outcome(str, Enum):
    """Per-POI outcome of a batch aggregation."""

    COMPUTED = "computed"
    NO_OVERLAP = "no_overlap"
    GEOMETRY_ERROR = "geometry_error"
    CRS_MISMATCH = "crs_mismatch"
    NO_CATCHMENT = "no_catchment"


@dataclass(frozen=True)
class AggregationResult:
    """Result-or-error record for one POI/catchment pair."""

    poi_id: int
    outcome: Outcome
    value: Optional[float] = None
    catchment_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.COMPUTED
