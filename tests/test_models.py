"""
Model Tests

Tests for the in-memory records and the SQLAlchemy ORM models.

Test Classes:
- TestRecords: Immutability, CRS normalisation, outcomes
- TestStatisticalRegionModel: ORM row -> Region conversion
- TestFacilityModel: ORM row -> PointOfInterest / Catchment conversion

Author: Catchstat Project
License: AGPL-3.0
"""

import dataclasses
import math

import pytest
from geoalchemy2.shape import from_shape
from pyproj import CRS
from shapely.geometry import MultiPolygon, Point, box

from catchstat.core.config import SRID
from catchstat.models.facility import Facility
from catchstat.models.records import AggregationResult, Catchment, Outcome, PointOfInterest, Region
from catchstat.models.region import StatisticalRegion


class TestRecords:
    """Test frozen record types."""

    def test_region_is_immutable(self):
        region = Region(1, box(0, 0, 1, 1), 2.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            region.statistic = 3.0

    def test_region_attributes_are_read_only(self):
        region = Region(1, box(0, 0, 1, 1), 2.0, attributes={"income": 1.0})
        with pytest.raises(TypeError):
            region.attributes["income"] = 5.0

    def test_statistic_cast_to_float(self):
        assert isinstance(Region(1, box(0, 0, 1, 1), 2).statistic, float)

    @pytest.mark.parametrize("value", [25832, "EPSG:25832", CRS.from_epsg(25832)])
    def test_crs_normalised(self, value):
        assert Catchment(box(0, 0, 1, 1), crs=value).crs == CRS.from_epsg(25832)

    def test_undeclared_crs_stays_none(self):
        assert PointOfInterest(1, "", Point(0, 0)).crs is None

    def test_region_equality_ignores_geometry(self):
        assert Region(1, box(0, 0, 1, 1), 2.0) == Region(1, box(5, 5, 6, 6), 2.0)

    def test_area(self):
        assert Catchment(box(0, 0, 2, 3)).area == 6.0

    def test_outcome_values(self):
        assert [o.value for o in Outcome] == [
            "computed", "no_overlap", "geometry_error", "crs_mismatch", "no_catchment"
        ]

    def test_result_ok(self):
        assert AggregationResult(1, Outcome.COMPUTED, value=1.0).ok
        assert not AggregationResult(1, Outcome.NO_OVERLAP).ok


class TestStatisticalRegionModel:
    """Test StatisticalRegion ORM model."""

    @pytest.fixture
    def region_row(self):
        return StatisticalRegion(
            id=1,
            name="North",
            statistic=5.0,
            attributes={"income": 250.0},
            geom=from_shape(MultiPolygon([box(0, 0, 10, 10)]), srid=SRID),
        )

    def test_table_name(self):
        assert StatisticalRegion.__tablename__ == "statistical_regions"

    def test_to_record(self, region_row):
        region = region_row.to_record()

        assert region.id == 1
        assert region.statistic == 5.0
        assert region.area == pytest.approx(100.0)
        assert region.crs == CRS.from_epsg(SRID)
        assert region.attributes["income"] == 250.0

    def test_to_record_with_other_statistic(self, region_row):
        assert region_row.to_record(statistic="income").statistic == 250.0

    def test_missing_value_becomes_nan(self, region_row):
        region_row.statistic = None
        assert math.isnan(region_row.to_record().statistic)
        assert math.isnan(region_row.to_record(statistic="unknown").statistic)


class TestFacilityModel:
    """Test Facility ORM model."""

    def test_table_name(self):
        assert Facility.__tablename__ == "facilities"

    def test_to_poi(self):
        facility = Facility(id=3, name="School", category="public",
                            location=from_shape(Point(1, 2), srid=SRID))
        poi = facility.to_poi()

        assert poi.id == 3
        assert poi.category == "public"
        assert (poi.point.x, poi.point.y) == (1.0, 2.0)
        assert poi.crs == CRS.from_epsg(SRID)

    def test_missing_category_is_empty(self):
        facility = Facility(id=3, location=from_shape(Point(1, 2), srid=SRID))
        assert facility.to_poi().category == ""

    def test_without_catchment(self):
        facility = Facility(id=3, location=from_shape(Point(1, 2), srid=SRID))
        assert facility.to_catchment() is None

    def test_with_catchment(self):
        facility = Facility(
            id=3,
            location=from_shape(Point(1, 2), srid=SRID),
            catchment=from_shape(MultiPolygon([box(0, 0, 4, 4)]), srid=SRID),
        )
        catchment = facility.to_catchment()

        assert catchment.id == 3
        assert catchment.area == pytest.approx(16.0)

    def test_result_columns_default_to_none(self):
        facility = Facility(id=3)
        assert facility.weighted_statistic is None
        assert facility.baseline_statistic is None
        assert facility.outcome is None
