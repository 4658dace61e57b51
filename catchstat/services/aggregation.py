"""
@file aggregation.py
@brief Spatially weighted aggregation of a regional statistic

@details
Computes the area-weighted mean of a region statistic over one catchment
polygon.

**Algorithm:**
1. Short-list candidate regions through the store's STRtree
2. Intersect each candidate with the catchment; drop overlaps whose area is
   at most ``sliver_tolerance`` times the catchment area
3. weight = overlap area / total retained overlap area
4. result = sum(statistic * weight)

Weights are normalised over the covered part of the catchment only. Parts of
the catchment outside every region are ignored rather than treated as a
zero-valued region.

The computation is a pure function of (catchment, store): it allocates its
own intersection records and never mutates the store, so calls can run in
parallel.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.geometry_store for candidate lookup
@see services.intersection for overlay and repair semantics
@see services.batch for per-POI batch runs
"""

import logging
import math
from typing import List

from catchstat.core.config import SLIVER_TOLERANCE
from catchstat.core.exceptions import GeometryError, NoOverlapError
from catchstat.models.records import Catchment, IntersectionRecord
from catchstat.services.crs import shared_crs
from catchstat.services.geometry_store import GeometryStore
from catchstat.services.intersection import overlay_geometries, repair_geometry

logger = logging.getLogger(__name__)


class AggregationService:
    """
    @brief Weighted-mean aggregation against one geometry store

    @details
    Holds only read-only references (the store and the sliver tolerance), so a
    single instance can be shared by every worker of a batch run.
    """

    def __init__(self, store: GeometryStore, sliver_tolerance: float = SLIVER_TOLERANCE):
        """
        @param store Regions to aggregate over
        @param sliver_tolerance Overlaps with area <= tolerance * catchment area are discarded
        """
        if sliver_tolerance < 0:
            raise ValueError("sliver_tolerance must be non-negative")
        self.store = store
        self.sliver_tolerance = sliver_tolerance

    def intersections(self, catchment: Catchment) -> List[IntersectionRecord]:
        """
        @brief Weighted overlap of the catchment with every region it covers

        @param catchment Catchment polygon tagged with its CRS
        @return IntersectionRecords sorted by region id; weights sum to 1
        @throws CRSMismatchError if catchment and store declare different CRSs
        @throws GeometryError if the catchment is unrepairable, or if every
                overlapping region failed to overlay
        @throws NoOverlapError if no region overlaps with positive area
        """
        shared_crs((catchment, self.store), context="weighted_mean")
        label = f"catchment {catchment.id}" if catchment.id is not None else "catchment"
        geometry = repair_geometry(catchment.geometry, label)

        threshold = self.sliver_tolerance * geometry.area
        retained = []
        failed = []
        for region in self.store.regions_overlapping(geometry):
            try:
                overlap = overlay_geometries(region.geometry, geometry)
            except GeometryError as e:
                logger.warning(f"Excluding region {region.id} from {label}: {e}")
                failed.append(region.id)
                continue

            area = overlap.area
            if area <= threshold:
                if area > 0:
                    logger.debug(f"Discarding sliver of region {region.id} in {label} ({area:.3g})")
                continue
            retained.append((region, overlap, area))

        if not retained:
            if failed:
                raise GeometryError(f"{label}: every overlapping region failed to overlay ({failed})")
            raise NoOverlapError(f"{label} does not overlap any region")

        total = math.fsum(area for _, _, area in retained)
        return [
            IntersectionRecord(
                region_id=region.id,
                geometry=overlap,
                area=area,
                statistic=region.statistic,
                weight=area / total,
            )
            for region, overlap, area in retained
        ]

    def weighted_mean(self, catchment: Catchment) -> float:
        """
        @brief Area-weighted mean of the region statistic over the catchment

        @return Convex combination of the overlapping regions' statistics
        @throws NoOverlapError if the catchment overlaps no region
        """
        return weighted_average(self.intersections(catchment))

    def coverage(self, catchment: Catchment) -> float:
        """Fraction of the catchment area covered by retained regions."""
        records = self.intersections(catchment)
        area = repair_geometry(catchment.geometry, "catchment").area
        return math.fsum(r.area for r in records) / area


def weighted_average(records: List[IntersectionRecord]) -> float:
    """
    @brief Combine weighted intersection records into one value

    @param records Non-empty output of AggregationService.intersections
    """
    result = math.fsum(r.statistic * r.weight for r in records)
    # rounding can push a convex combination past its bounds
    low = min(r.statistic for r in records)
    high = max(r.statistic for r in records)
    return min(max(result, low), high)


def weighted_mean(catchment: Catchment, store: GeometryStore,
                  sliver_tolerance: float = SLIVER_TOLERANCE) -> float:
    """
    @brief Functional entry point for a single aggregation

    @code{.python}
    value = weighted_mean(Catchment(polygon, crs=25832), store)
    @endcode
    """
    return AggregationService(store, sliver_tolerance).weighted_mean(catchment)
