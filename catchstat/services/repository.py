"""
@file repository.py
@brief Loading aggregation inputs from PostGIS and writing results back

@details
Thin bridge between the ORM models and the in-memory records used by the
aggregation core. The geometry store is rebuilt from the statistical_regions
table on each call; it is read-only for the lifetime of that run.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see models.region, models.facility for the table definitions
"""

import logging
from typing import Dict, List, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from catchstat.core.cache import digest
from catchstat.core.config import SRID
from catchstat.models.facility import Facility
from catchstat.models.region import StatisticalRegion
from catchstat.services.batch import BatchReport
from catchstat.services.geometry_store import GeometryStore

logger = logging.getLogger(__name__)


def load_geometry_store(db: Session, statistic: Optional[str] = None) -> GeometryStore:
    """
    @brief Build a GeometryStore from every stored statistical region

    @param db SQLAlchemy session
    @param statistic Attribute name to average instead of the primary statistic
    @return GeometryStore tagged with the configured SRID
    """
    rows = db.query(StatisticalRegion).order_by(StatisticalRegion.id).all()
    logger.info(f"Loaded {len(rows)} statistical regions from database")
    return GeometryStore((row.to_record(SRID, statistic) for row in rows), crs=SRID)


def region_version(db: Session) -> str:
    """
    @brief Fingerprint of the statistical_regions table

    @details
    Row count, highest id and statistic total. Any region reload that
    changes one of these yields a new fingerprint, so cached aggregates
    keyed on it are not served against replaced regions.
    """
    row = db.query(
        func.count(StatisticalRegion.id),
        func.max(StatisticalRegion.id),
        func.sum(StatisticalRegion.statistic),
    ).one()
    return digest([str(value) for value in row])


def load_facilities(db: Session) -> List[Facility]:
    return db.query(Facility).order_by(Facility.id).all()


def save_results(db: Session, facilities: List[Facility], report: BatchReport,
                 baseline: Mapping[int, Optional[float]]) -> int:
    """
    @brief Attach batch outcomes to facility rows and commit

    @details
    Facilities skipped by a cancelled run keep their previous values.

    @return Number of facilities updated
    """
    results: Dict[int, object] = {r.poi_id: r for r in report.results}
    updated = 0
    for facility in facilities:
        result = results.get(facility.id)
        if result is None:
            continue
        facility.weighted_statistic = result.value
        facility.outcome = result.outcome.value
        facility.baseline_statistic = baseline.get(facility.id)
        updated += 1
    db.commit()
    logger.info(f"Stored aggregation results for {updated} facilities")
    return updated
