"""
Statistical Region Data Model

This module defines the SQLAlchemy ORM model for statistical regions stored in
PostGIS. Each region is a fixed administrative/statistical polygon carrying
the measured attribute that catchments are averaged over.

Model: StatisticalRegion
- Stores region boundaries as MULTIPOLYGON geometries in the working CRS
- Holds the primary statistic plus optional further numeric attributes

Key Attributes:
- geom: MULTIPOLYGON geometry (SRID from CATCHSTAT_SRID, default EPSG:25832)
- statistic: value averaged by the aggregator (e.g. welfare rate)
- attributes: JSON object of further numeric attributes

Author: Catchstat Project
License: AGPL-3.0
"""

from sqlalchemy import Column, Integer, Float, String, JSON
from geoalchemy2 import Geometry
from geoalchemy2.shape import to_shape

from catchstat.core.config import SRID
from catchstat.db.base import Base
from catchstat.models.records import Region


class StatisticalRegion(Base):
    """
    SQLAlchemy ORM model for statistical regions.

    Attributes:
        id (int): Unique region identifier, primary key
        name (str): Display name of the region
        statistic (float): Primary statistic (nullable for regions without data)
        attributes (dict): Further numeric attributes keyed by name
        geom (Geometry): MULTIPOLYGON in the working CRS
    """

    __tablename__ = "statistical_regions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    statistic = Column(Float, nullable=True)
    attributes = Column(JSON, nullable=True)

    # Spatial index is created by GeoAlchemy2
    geom = Column(Geometry("MULTIPOLYGON", srid=SRID))

    def to_record(self, crs=SRID, statistic: str = None) -> Region:
        """
        Convert to an in-memory Region.

        Args:
            crs: CRS to tag the record with (defaults to the column SRID)
            statistic (str): Attribute to use as the statistic instead of ``statistic``

        Returns:
            Region: Immutable record for the geometry store
        """
        attributes = dict(self.attributes or {})
        value = attributes.get(statistic) if statistic else self.statistic
        return Region(
            id=self.id,
            geometry=to_shape(self.geom),
            statistic=float("nan") if value is None else value,
            crs=crs,
            attributes=attributes,
        )
