"""
@file pipeline.py
@brief End-to-end facility aggregation run

@details
Orchestrates one batch over the stored facilities:
1. Build the geometry store from statistical_regions
2. Collect authoritative catchments; approximate the missing ones
   (Voronoi inside the study area, or fixed-radius buffers)
3. Link facilities to catchments (by id) and to their containing region
4. Run the batch aggregation
5. Write weighted statistic, baseline and outcome back to each facility

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from catchstat.core.config import BATCH_WORKERS
from catchstat.core.exceptions import GeometryError
from catchstat.models.records import Catchment, PointOfInterest
from catchstat.services.batch import BatchAggregator, BatchReport
from catchstat.services.catchments import buffer_catchments, study_area_catchment, voronoi_catchments
from catchstat.services.linkage import (
    LinkageReport,
    baseline_statistics,
    link_by_identifier,
    link_to_regions,
)
from catchstat.services.repository import load_facilities, load_geometry_store, save_results

logger = logging.getLogger(__name__)


@dataclass
class FacilityRun:
    """Everything produced by one facility batch run."""

    report: BatchReport
    catchments: LinkageReport
    regions: LinkageReport
    baseline: Dict[int, Optional[float]]
    approximated: int = 0

    def summary(self) -> dict:
        summary = self.report.summary()
        summary["approximated_catchments"] = self.approximated
        summary["outside_regions"] = list(self.regions.unlinked)
        return summary


def distinct_locations(pois: List[PointOfInterest]) -> List[PointOfInterest]:
    """
    @brief Drop POIs that share a location with another POI

    @details
    Co-located generators have no well-defined Voronoi cell, so none of them
    gets one. They are logged and later reported as ``no_catchment``.
    """
    counts = Counter((poi.point.x, poi.point.y) for poi in pois)
    shared = [poi.id for poi in pois if counts[(poi.point.x, poi.point.y)] > 1]
    if shared:
        logger.warning(f"Facilities {shared} share a location; no Voronoi cell is built for them")
    return [poi for poi in pois if counts[(poi.point.x, poi.point.y)] == 1]


def run_facility_batch(db: Session, statistic: Optional[str] = None, fallback: str = "voronoi",
                       buffer_radius: Optional[float] = None, workers: int = BATCH_WORKERS,
                       cancel: Optional[threading.Event] = None) -> FacilityRun:
    """
    @brief Aggregate every stored facility and persist the results

    @param db SQLAlchemy session
    @param statistic Region attribute to average (primary statistic if None)
    @param fallback "voronoi", "buffer" or "none" for facilities without a catchment
    @param buffer_radius Radius in CRS units, required for the buffer fallback
    @param workers Worker pool size
    @param cancel Optional cancellation flag checked between facilities
    @return FacilityRun with the batch report and both linkages
    """
    if fallback == "buffer" and not buffer_radius:
        raise ValueError("buffer_radius is required for the buffer fallback")

    store = load_geometry_store(db, statistic)
    facilities = load_facilities(db)
    pois = [facility.to_poi(store.crs) for facility in facilities]

    catchments: Dict[int, Catchment] = {}
    for facility in facilities:
        catchment = facility.to_catchment(store.crs)
        if catchment is not None:
            catchments[facility.id] = catchment

    missing = [poi for poi in pois if poi.id not in catchments]
    approximated = 0
    if missing and fallback != "none":
        study_area = store.study_area()
        boundary = study_area_catchment(study_area, store.crs)
        try:
            if boundary is None:
                raise GeometryError("study area is empty")
            if fallback == "voronoi":
                inside = [poi for poi in missing if study_area.contains(poi.point)]
                if len(inside) < len(missing):
                    logger.warning(f"{len(missing) - len(inside)} facilities lie outside the study area")
                approximations = voronoi_catchments(distinct_locations(inside), boundary)
            else:
                approximations = buffer_catchments(missing, buffer_radius, boundary=boundary)
        except GeometryError as e:
            logger.error(f"Could not approximate catchments ({fallback}): {e}")
            approximations = {}
        catchments.update(approximations)
        approximated = len(approximations)
        logger.info(f"Approximated {approximated} of {len(missing)} missing catchments with {fallback}")

    catchment_links = link_by_identifier(pois, catchments)
    region_links = link_to_regions(pois, store)
    baseline = baseline_statistics(region_links, store)

    report = BatchAggregator(store, max_workers=workers).run(catchment_links.jobs(), cancel=cancel)
    save_results(db, facilities, report, baseline)

    return FacilityRun(
        report=report,
        catchments=catchment_links,
        regions=region_links,
        baseline=baseline,
        approximated=approximated,
    )
