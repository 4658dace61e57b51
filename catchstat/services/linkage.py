"""
@file linkage.py
@brief Association of POIs with catchments and with their containing region

@details
Three linkages feed the rest of the pipeline:
- **By identifier**: authoritative catchments keyed by POI id
- **By containment**: point-in-polygon against a catchment collection; a
  POI may fall into zero, one or several catchments
- **To regions**: the single statistical region holding each POI, used as
  the naive, non-weighted baseline

Every linkage is total over the POI set: POIs that match nothing are listed
in ``unlinked`` instead of being dropped.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from shapely.strtree import STRtree

from catchstat.models.records import Catchment, PointOfInterest
from catchstat.services.crs import shared_crs
from catchstat.services.geometry_store import GeometryStore

logger = logging.getLogger(__name__)


@dataclass
class LinkageReport:
    """
    Result of a linkage step.

    Attributes:
        pairs (List[Tuple[int, Any]]): (POI id, linked item) pairs in POI order
        unlinked (List[int]): POI ids that matched nothing
    """

    pairs: List[Tuple[int, Any]] = field(default_factory=list)
    unlinked: List[int] = field(default_factory=list)

    def as_dict(self) -> Dict[int, List[Any]]:
        linked: Dict[int, List[Any]] = {poi_id: [] for poi_id in self.unlinked}
        for poi_id, item in self.pairs:
            linked.setdefault(poi_id, []).append(item)
        return linked

    def jobs(self) -> Iterator[Tuple[int, Optional[Catchment]]]:
        """Batch jobs: every pair, plus a (poi_id, None) job per unlinked POI."""
        yield from self.pairs
        for poi_id in self.unlinked:
            yield poi_id, None


def link_by_identifier(pois: Iterable[PointOfInterest],
                       catchments: Mapping[int, Catchment]) -> LinkageReport:
    """
    @brief Pair each POI with the catchment stored under its id

    @param pois POIs to link
    @param catchments Mapping POI id -> authoritative catchment
    @return LinkageReport of (POI id, Catchment) pairs
    """
    report = LinkageReport()
    for poi in pois:
        catchment = catchments.get(poi.id)
        if catchment is None:
            report.unlinked.append(poi.id)
        else:
            report.pairs.append((poi.id, catchment))
    if report.unlinked:
        logger.warning(f"{len(report.unlinked)} POIs have no catchment: {report.unlinked[:10]}")
    return report


def link_by_containment(pois: Iterable[PointOfInterest],
                        catchments: Mapping[int, Catchment]) -> LinkageReport:
    """
    @brief Pair each POI with every catchment covering its location

    @details
    Boundary points count as covered. Pairs for one POI are ordered by
    catchment id.

    @throws CRSMismatchError if POIs and catchments declare different CRSs
    """
    pois = list(pois)
    keys = sorted(catchments)
    shared_crs(pois + [catchments[k] for k in keys], context="link_by_containment")

    report = LinkageReport()
    tree = STRtree([catchments[k].geometry for k in keys]) if keys else None
    for poi in pois:
        hits = [] if tree is None else sorted(tree.query(poi.point, predicate="covered_by"))
        if not hits:
            report.unlinked.append(poi.id)
            continue
        for index in hits:
            report.pairs.append((poi.id, catchments[keys[int(index)]]))
    if report.unlinked:
        logger.warning(f"{len(report.unlinked)} POIs fall outside every catchment: {report.unlinked[:10]}")
    return report


def link_to_regions(pois: Iterable[PointOfInterest], store: GeometryStore) -> LinkageReport:
    """
    @brief Pair each POI with the id of the region containing it

    @throws CRSMismatchError if a POI declares a CRS other than the store's
    """
    report = LinkageReport()
    for poi in pois:
        region = store.region_containing(poi)
        if region is None:
            report.unlinked.append(poi.id)
        else:
            report.pairs.append((poi.id, region.id))
    if report.unlinked:
        logger.warning(f"{len(report.unlinked)} POIs fall outside every region: {report.unlinked[:10]}")
    return report


def baseline_statistics(report: LinkageReport, store: GeometryStore) -> Dict[int, Optional[float]]:
    """
    @brief Naive per-POI statistic: the value of the containing region

    @param report Output of link_to_regions
    @return POI id -> region statistic, None for POIs outside every region
    """
    values: Dict[int, Optional[float]] = {poi_id: None for poi_id in report.unlinked}
    for poi_id, region_id in report.pairs:
        values[poi_id] = store.get(region_id).statistic
    return values
