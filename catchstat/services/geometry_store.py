"""
@file geometry_store.py
@brief Read-only collection of statistical regions with a spatial index

@details
Holds every Region of one study area in a single planar CRS. The store is
built once and never mutated, so any number of aggregation workers can read
it concurrently without locking.

**Load-time checks:**
- Region ids must be unique
- All declared CRSs must match (CRSMismatchError otherwise)
- Invalid geometries are repaired; unrepairable regions and regions with
  a non-finite statistic are excluded with a warning

Candidate lookup goes through a shapely STRtree, followed by an exact
intersects predicate. Results are ordered by region id.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.intersection for the repair policy
@see services.aggregation for the main consumer
"""

import dataclasses
import logging
import math
from typing import Iterable, Iterator, List, Optional

from pyproj import CRS
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.strtree import STRtree

from catchstat.core.exceptions import CRSMismatchError, GeometryError
from catchstat.models.records import Region
from catchstat.services.crs import normalize_crs, shared_crs, warn_if_geographic
from catchstat.services.intersection import repair_geometry

logger = logging.getLogger(__name__)


class GeometryStore:
    """
    @brief Immutable, indexed set of statistical regions

    @details
    Regions that arrive without a CRS adopt the store's CRS, so every record
    handed out by the store carries its coordinate system.
    """

    def __init__(self, regions: Iterable[Region], crs=None):
        """
        @param regions Regions to hold
        @param crs Declared CRS of the collection; inferred from the regions if omitted
        @throws ValueError on duplicate region ids
        @throws CRSMismatchError if regions disagree with each other or with ``crs``
        """
        regions = list(regions)

        declared = normalize_crs(crs)
        resolved = shared_crs(regions, context="geometry store")
        if declared is not None and resolved is not None and declared != resolved:
            raise CRSMismatchError(declared, resolved, "geometry store")
        self._crs: Optional[CRS] = declared if declared is not None else resolved
        warn_if_geographic(self._crs, "Geometry store")

        seen = set()
        kept = []
        self._excluded: List[int] = []
        for region in regions:
            if region.id in seen:
                raise ValueError(f"Duplicate region id: {region.id}")
            seen.add(region.id)

            if not math.isfinite(region.statistic):
                logger.warning(f"Excluding region {region.id}: statistic is {region.statistic}")
                self._excluded.append(region.id)
                continue

            try:
                geometry = repair_geometry(region.geometry, f"region {region.id}")
            except GeometryError as e:
                logger.warning(f"Excluding region {region.id}: {e}")
                self._excluded.append(region.id)
                continue

            if geometry is not region.geometry or region.crs is None:
                region = dataclasses.replace(region, geometry=geometry, crs=self._crs)
            kept.append(region)

        kept.sort(key=lambda r: r.id)
        self._regions = tuple(kept)
        self._by_id = {r.id: r for r in self._regions}
        self._tree = STRtree([r.geometry for r in self._regions]) if self._regions else None
        self._study_area = None

        logger.info(
            f"Geometry store loaded: {len(self._regions)} regions"
            + (f", {len(self._excluded)} excluded" if self._excluded else "")
        )

    @property
    def crs(self) -> Optional[CRS]:
        return self._crs

    @property
    def excluded(self) -> List[int]:
        """Ids of regions dropped at load because their geometry was unrepairable."""
        return list(self._excluded)

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self._regions)

    def __contains__(self, region_id) -> bool:
        return region_id in self._by_id

    def get(self, region_id: int) -> Region:
        """@throws KeyError if the id is unknown"""
        return self._by_id[region_id]

    def regions_overlapping(self, query) -> List[Region]:
        """
        @brief Every region whose geometry intersects the query

        @details
        Touching regions are included; the aggregator filters zero-area overlaps.

        @param query Catchment (or any record with ``geometry``/``crs``) or a bare geometry
        @return Regions sorted by id
        @throws CRSMismatchError if the query declares a different CRS
        """
        geometry = _geometry_of(query)
        if hasattr(query, "crs"):
            shared_crs((self, query), context="regions_overlapping")
        if self._tree is None or geometry.is_empty:
            return []
        indices = self._tree.query(geometry, predicate="intersects")
        return [self._regions[int(i)] for i in sorted(indices)]

    def region_containing(self, point) -> Optional[Region]:
        """
        @brief Region covering a point (boundary points included)

        @details
        A point on a shared boundary belongs to the region with the lowest id.

        @return Region, or None if the point lies outside every region
        """
        geometry = _geometry_of(point)
        if hasattr(point, "crs"):
            shared_crs((self, point), context="region_containing")
        if self._tree is None:
            return None
        indices = self._tree.query(geometry, predicate="covered_by")
        if len(indices) == 0:
            return None
        return self._regions[int(min(indices))]

    def study_area(self) -> BaseGeometry:
        """Union of all region geometries."""
        if self._study_area is None:
            self._study_area = unary_union([r.geometry for r in self._regions])
        return self._study_area

    def with_statistic(self, attribute: str) -> "GeometryStore":
        """
        @brief Copy of the store averaging another numeric attribute

        @param attribute Key in each region's ``attributes``
        @throws ValueError if any region lacks the attribute
        """
        missing = [r.id for r in self._regions if attribute not in r.attributes]
        if missing:
            raise ValueError(f"Attribute '{attribute}' missing for regions {missing[:10]}")
        return GeometryStore(
            (dataclasses.replace(r, statistic=_statistic_value(r.attributes[attribute])) for r in self._regions),
            crs=self._crs,
        )


def _statistic_value(value) -> float:
    return float("nan") if value is None else value


def _geometry_of(query) -> BaseGeometry:
    if isinstance(query, BaseGeometry):
        return query
    geometry = getattr(query, "geometry", None)
    if geometry is None:
        geometry = getattr(query, "point", None)
    if geometry is None:
        raise TypeError(f"Cannot take geometry of {type(query).__name__}")
    return geometry
