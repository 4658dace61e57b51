"""
Intersection Engine Tests

Tests for geometry repair and polygonal overlay.

Test Classes:
- TestRepairGeometry: Validation and make_valid repair
- TestPolygonalPart: Reduction of mixed results to areal parts
- TestOverlay: Overlap of valid geometries
- TestIntersectRecords: CRS-checked intersection of records

Author: Catchstat Project
License: AGPL-3.0
"""

from unittest.mock import MagicMock

import pytest
from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, LineString, MultiPolygon, Point, Polygon, box

from catchstat.core.exceptions import CRSMismatchError, GeometryError
from catchstat.models.records import Catchment, Region
from catchstat.services.intersection import intersect, overlay_geometries, polygonal_part, repair_geometry

BOWTIE = Polygon([(0, 0), (2, 2), (2, 0), (0, 2)])


class TestRepairGeometry:
    """Test repair_geometry()."""

    def test_valid_polygon_returned_unchanged(self):
        polygon = box(0, 0, 1, 1)
        assert repair_geometry(polygon) is polygon

    def test_bowtie_is_split_into_two_triangles(self):
        """A self-intersecting ring is repaired, not rejected."""
        repaired = repair_geometry(BOWTIE, "bowtie")

        assert repaired.is_valid
        assert isinstance(repaired, MultiPolygon)
        assert len(repaired.geoms) == 2
        assert repaired.area == pytest.approx(2.0)

    @pytest.mark.parametrize("geom", [None, Polygon(), LineString([(0, 0), (1, 1)]), Point(0, 0)])
    def test_non_areal_input_raises(self, geom):
        with pytest.raises(GeometryError):
            repair_geometry(geom)

    def test_collapsed_polygon_raises(self):
        collapsed = Polygon([(0, 0), (1, 1), (2, 2)])
        with pytest.raises(GeometryError):
            repair_geometry(collapsed, "collapsed")

    def test_error_message_uses_label(self):
        with pytest.raises(GeometryError, match="region 7"):
            repair_geometry(Polygon(), "region 7")


class TestPolygonalPart:
    """Test polygonal_part()."""

    def test_keeps_polygon_from_collection(self):
        collection = GeometryCollection([box(0, 0, 1, 1), LineString([(1, 1), (2, 2)])])
        result = polygonal_part(collection)

        assert isinstance(result, Polygon)
        assert result.area == pytest.approx(1.0)

    def test_lines_only_become_empty(self):
        assert polygonal_part(LineString([(0, 0), (1, 0)])).is_empty

    def test_none_becomes_empty(self):
        assert polygonal_part(None).is_empty


class TestOverlay:
    """Test overlay_geometries()."""

    def test_partial_overlap(self):
        overlap = overlay_geometries(box(0, 0, 10, 10), box(6, 0, 16, 10))
        assert overlap.area == pytest.approx(40.0)

    def test_disjoint_is_empty(self):
        assert overlay_geometries(box(0, 0, 1, 1), box(5, 5, 6, 6)).is_empty

    def test_shared_edge_is_empty(self):
        """Touching along an edge yields a line, which has no area."""
        assert overlay_geometries(box(0, 0, 1, 1), box(1, 0, 2, 1)).is_empty

    def test_region_with_hole(self):
        donut = box(0, 0, 10, 10).difference(box(4, 4, 6, 6))
        overlap = overlay_geometries(donut, box(0, 0, 10, 10))
        assert overlap.area == pytest.approx(96.0)

    def test_predicate_failure_is_geometry_error(self):
        first = MagicMock()
        first.intersects.side_effect = GEOSException("TopologyException: side location conflict")
        with pytest.raises(GeometryError, match="Overlay failed"):
            overlay_geometries(first, box(0, 0, 1, 1))


class TestIntersectRecords:
    """Test intersect() on CRS-tagged records."""

    def test_same_crs(self):
        region = Region(1, box(0, 0, 10, 10), 1.0, crs=25832)
        catchment = Catchment(box(5, 5, 15, 15), crs="EPSG:25832")
        assert intersect(region, catchment).area == pytest.approx(25.0)

    def test_crs_mismatch_raises(self):
        region = Region(1, box(0, 0, 10, 10), 1.0, crs=25832)
        catchment = Catchment(box(5, 5, 15, 15), crs=4326)
        with pytest.raises(CRSMismatchError):
            intersect(region, catchment)

    def test_undeclared_crs_is_not_checked(self):
        region = Region(1, box(0, 0, 10, 10), 1.0, crs=25832)
        catchment = Catchment(box(5, 5, 15, 15))
        assert intersect(region, catchment).area == pytest.approx(25.0)

    def test_invalid_catchment_is_repaired(self):
        region = Region(1, box(0, 0, 2, 2), 1.0)
        assert intersect(region, Catchment(BOWTIE)).area == pytest.approx(2.0)
