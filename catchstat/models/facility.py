"""
Facility Data Model

This module defines the SQLAlchemy ORM model for points of interest (e.g.
schools) whose catchments are aggregated over statistical regions.

Model: Facility
- Stores the facility location as a POINT geometry
- Optionally stores an authoritative catchment polygon
- Receives the derived weighted statistic, the naive containing-region
  baseline and the aggregation outcome after a batch run

Author: Catchstat Project
License: AGPL-3.0
"""

from sqlalchemy import Column, Integer, Float, String
from geoalchemy2 import Geometry
from geoalchemy2.shape import to_shape

from catchstat.core.config import SRID
from catchstat.db.base import Base
from catchstat.models.records import Catchment, PointOfInterest


class Facility(Base):
    """
    SQLAlchemy ORM model for facilities.

    Attributes:
        id (int): Unique facility identifier, primary key
        name (str): Display name
        category (str): Categorical attribute (e.g. ownership class)
        location (Geometry): POINT in the working CRS
        catchment (Geometry): Authoritative catchment, NULL if unknown
        weighted_statistic (float): Area-weighted statistic of the catchment
        baseline_statistic (float): Statistic of the region containing the facility
        outcome (str): Aggregation outcome (computed, no_overlap, ...)
    """

    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    category = Column(String(64), nullable=True, index=True)

    location = Column(Geometry("POINT", srid=SRID))
    catchment = Column(Geometry("MULTIPOLYGON", srid=SRID), nullable=True)

    # Derived by the batch aggregation
    weighted_statistic = Column(Float, nullable=True)
    baseline_statistic = Column(Float, nullable=True)
    outcome = Column(String(32), nullable=True)

    def to_poi(self, crs=SRID) -> PointOfInterest:
        return PointOfInterest(
            id=self.id,
            category=self.category or "",
            point=to_shape(self.location),
            crs=crs,
        )

    def to_catchment(self, crs=SRID):
        """Authoritative catchment record, or None if the facility has none."""
        if self.catchment is None:
            return None
        return Catchment(to_shape(self.catchment), crs=crs, id=self.id)
