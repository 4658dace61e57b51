"""
@file intersection.py
@brief Polygon intersection engine

@details
Computes the polygonal overlap of two CRS-tagged geometries.

**Result semantics:**
- Disjoint inputs: empty polygon (not an error)
- Touching-only inputs: empty polygon; line and point fragments of the
  overlay are discarded, so zero-area results never reach the weighting step
- Multi-part overlaps: returned whole as a MultiPolygon, so ``.area`` is the
  total overlap of the pair

**Validity policy:**
Invalid inputs are repaired with ``shapely.make_valid`` and reduced to their
polygonal part. Inputs that stay invalid or collapse to zero area raise
GeometryError instead of producing a silently wrong area.

Areas are in the native units of the shared CRS squared; no unit conversion
is performed.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.aggregation for the consumer of overlap areas
"""

import logging

import shapely
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import explain_validity

from catchstat.core.exceptions import GeometryError
from catchstat.services.crs import shared_crs

logger = logging.getLogger(__name__)

POLYGONAL = (Polygon, MultiPolygon)


def polygonal_part(geom: BaseGeometry) -> BaseGeometry:
    """
    @brief Keep only the areal components of a geometry

    @param geom Any shapely geometry
    @return Polygon or MultiPolygon, or an empty Polygon if nothing areal remains
    """
    if geom is None or geom.is_empty:
        return Polygon()
    if isinstance(geom, POLYGONAL):
        return geom
    if hasattr(geom, "geoms"):
        parts = [polygonal_part(part) for part in geom.geoms]
        parts = [part for part in parts if not part.is_empty]
        if not parts:
            return Polygon()
        if len(parts) == 1:
            return parts[0]
        return unary_union(parts)
    return Polygon()


def repair_geometry(geom: BaseGeometry, label: str = "geometry") -> BaseGeometry:
    """
    @brief Return a valid polygonal version of ``geom`` or fail

    @details
    Valid polygons are returned unchanged. Anything else goes through
    ``shapely.make_valid`` (which splits self-intersecting rings and drops
    collapsed edges) and is reduced to its polygonal part.

    @param geom Input geometry
    @param label Human-readable name used in log and error messages
    @return Valid Polygon or MultiPolygon with positive area
    @throws GeometryError if the geometry is missing, empty, non-areal or unrepairable
    """
    if geom is None or geom.is_empty:
        raise GeometryError(f"{label} is empty")

    if isinstance(geom, POLYGONAL) and geom.is_valid:
        if geom.area <= 0:
            raise GeometryError(f"{label} has zero area")
        return geom

    if not geom.is_valid:
        logger.debug(f"Repairing {label}: {explain_validity(geom)}")
        try:
            geom = shapely.make_valid(geom)
        except GEOSException as e:
            raise GeometryError(f"{label} could not be repaired: {e}") from e

    repaired = polygonal_part(geom)
    if repaired.is_empty or repaired.area <= 0:
        raise GeometryError(f"{label} has no area after repair")
    if not repaired.is_valid:
        raise GeometryError(f"{label} is still invalid after repair: {explain_validity(repaired)}")
    return repaired


def overlay_geometries(first: BaseGeometry, second: BaseGeometry) -> BaseGeometry:
    """
    @brief Polygonal intersection of two already-valid geometries

    @return Polygon or MultiPolygon, empty when the inputs only touch or are disjoint
    @throws GeometryError if GEOS fails on the overlay
    """
    try:
        if not first.intersects(second):
            return Polygon()
        result = first.intersection(second)
    except GEOSException as e:
        raise GeometryError(f"Overlay failed: {e}") from e
    return polygonal_part(result)


def intersect(first, second) -> BaseGeometry:
    """
    @brief Intersect two CRS-tagged records (Region, Catchment)

    @details
    Checks that both records declare the same CRS, repairs each geometry,
    then computes the polygonal overlap.

    @param first Record with ``geometry`` and ``crs`` attributes
    @param second Record with ``geometry`` and ``crs`` attributes
    @return Polygon or MultiPolygon, possibly empty
    @throws CRSMismatchError if the records declare different CRSs
    @throws GeometryError if either geometry is unrepairable

    @code{.python}
    overlap = intersect(region, catchment)
    print(overlap.area)
    @endcode
    """
    shared_crs((first, second), context="intersect")
    a = repair_geometry(first.geometry, _label(first))
    b = repair_geometry(second.geometry, _label(second))
    return overlay_geometries(a, b)


def _label(record) -> str:
    name = type(record).__name__.lower()
    record_id = getattr(record, "id", None)
    return f"{name} {record_id}" if record_id is not None else name
