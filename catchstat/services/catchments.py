"""
@file catchments.py
@brief Approximate catchment construction for POIs without authoritative polygons

@details
Two approximations are supported:
- **Voronoi**: partition a boundary polygon around the POI locations; each
  cell is the set of locations closer to its POI than to any other, clipped
  to the boundary
- **Buffer**: a circle of fixed radius around each POI, optionally clipped
  to the boundary

Both return ordinary Catchment records keyed by POI id and tagged with the
shared CRS, so the aggregator treats them like authoritative catchments.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.linkage for attaching catchments to POIs
"""

import logging
from typing import Dict, Iterable, Optional

from shapely.geometry import MultiPoint
from shapely.geometry.base import BaseGeometry
from shapely.ops import voronoi_diagram
from shapely.strtree import STRtree

from catchstat.core.exceptions import GeometryError
from catchstat.models.records import Catchment, PointOfInterest
from catchstat.services.crs import shared_crs
from catchstat.services.intersection import overlay_geometries, repair_geometry

logger = logging.getLogger(__name__)


def voronoi_catchments(pois: Iterable[PointOfInterest], boundary) -> Dict[int, Catchment]:
    """
    @brief Voronoi partition of ``boundary`` around the POI locations

    @details
    Produces exactly one cell per POI. Cells are clipped to the boundary,
    partition it without gaps or overlaps, and each cell's interior holds its
    own generator and no other. A single POI receives the whole boundary.

    @param pois POIs acting as generator points
    @param boundary Study-area polygon: a Catchment/Region record or a bare geometry
    @return Mapping POI id -> Catchment (catchment id = POI id)
    @throws CRSMismatchError if POIs and boundary declare different CRSs
    @throws GeometryError on duplicate locations, POIs outside the boundary or
            an unrepairable boundary
    @throws ValueError on duplicate POI ids
    """
    pois = list(pois)
    boundary_geom = boundary if isinstance(boundary, BaseGeometry) else boundary.geometry
    records = pois if isinstance(boundary, BaseGeometry) else pois + [boundary]
    crs = shared_crs(records, context="voronoi catchments")
    boundary_geom = repair_geometry(boundary_geom, "voronoi boundary")

    if not pois:
        return {}

    ids = [poi.id for poi in pois]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate POI ids among Voronoi generators")

    seen = {}
    for poi in pois:
        key = (poi.point.x, poi.point.y)
        if key in seen:
            raise GeometryError(f"POIs {seen[key]} and {poi.id} share location {key}")
        seen[key] = poi.id
        if not boundary_geom.contains(poi.point):
            raise GeometryError(f"POI {poi.id} lies outside the Voronoi boundary")

    if len(pois) == 1:
        return {pois[0].id: Catchment(boundary_geom, crs=crs, id=pois[0].id)}

    cells = list(voronoi_diagram(MultiPoint([poi.point for poi in pois]), envelope=boundary_geom).geoms)
    tree = STRtree(cells)

    catchments = {}
    for poi in pois:
        matches = tree.query(poi.point, predicate="within")
        if len(matches) != 1:
            raise GeometryError(f"POI {poi.id} matched {len(matches)} Voronoi cells")
        clipped = overlay_geometries(cells[int(matches[0])], boundary_geom)
        if clipped.is_empty:
            raise GeometryError(f"Voronoi cell of POI {poi.id} vanished after clipping")
        catchments[poi.id] = Catchment(clipped, crs=crs, id=poi.id)

    logger.info(f"Built {len(catchments)} Voronoi catchments")
    return catchments


def buffer_catchments(pois: Iterable[PointOfInterest], radius: float,
                      boundary=None, resolution: int = 16) -> Dict[int, Catchment]:
    """
    @brief Circular catchments of fixed radius around each POI

    @details
    POIs whose clipped buffer is empty (outside the boundary) are left out and
    logged; linkage then reports them as unlinked.

    @param pois POIs to buffer
    @param radius Radius in CRS units (metres for a UTM CRS)
    @param boundary Optional clipping polygon (record or bare geometry)
    @param resolution Segments per quarter circle
    @return Mapping POI id -> Catchment
    """
    if radius <= 0:
        raise ValueError("Buffer radius must be positive")

    pois = list(pois)
    boundary_geom = None
    records = list(pois)
    if boundary is not None:
        if isinstance(boundary, BaseGeometry):
            boundary_geom = boundary
        else:
            boundary_geom = boundary.geometry
            records.append(boundary)
        boundary_geom = repair_geometry(boundary_geom, "buffer boundary")
    crs = shared_crs(records, context="buffer catchments")

    catchments = {}
    for poi in pois:
        circle = poi.point.buffer(radius, resolution)
        if boundary_geom is not None:
            circle = overlay_geometries(circle, boundary_geom)
        if circle.is_empty:
            logger.warning(f"Buffer of POI {poi.id} lies outside the boundary")
            continue
        catchments[poi.id] = Catchment(circle, crs=crs, id=poi.id)
    return catchments


def study_area_catchment(geometry: BaseGeometry, crs=None) -> Optional[Catchment]:
    """Wrap a study-area geometry as a CRS-tagged record for use as a boundary."""
    if geometry is None or geometry.is_empty:
        return None
    return Catchment(geometry, crs=crs)
