"""
Test Configuration and Shared Fixtures

This module provides shared pytest fixtures and configuration for the test suite.

Fixtures:
- two_region_store: Regions A (stat 5) and B (stat 20) side by side
- split_store: Regions A (stat 10) and B (stat 30) of equal size
- straddling_catchment: Catchment covering 40% A / 60% B of split_store
- grid_store: 3x3 grid of unit-square regions
- sample_regions_gdf / sample_facilities_gdf: GeoDataFrames for ETL tests
- mock_session: MagicMock SQLAlchemy session

Author: Catchstat Project
License: AGPL-3.0
"""

import logging
from unittest.mock import MagicMock

import geopandas as gpd
import pytest
from shapely.geometry import Point, box

from catchstat.core.config import SRID
from catchstat.models.records import Catchment, PointOfInterest, Region
from catchstat.services.geometry_store import GeometryStore

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


# Mark test categories for selective running
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "slow: Slow-running tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "etl: ETL pipeline tests")
    config.addinivalue_line("markers", "models: Model and record tests")
    config.addinivalue_line("markers", "seed: Database seeding tests")
    config.addinivalue_line("markers", "geometry: Spatial computation tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    geometry_modules = ("test_intersection", "test_geometry_store", "test_aggregation",
                        "test_catchments", "test_linkage", "test_batch")
    for item in items:
        path = str(item.fspath)
        if "test_api" in path:
            item.add_marker(pytest.mark.api)
        elif "test_etl" in path:
            item.add_marker(pytest.mark.etl)
        elif "test_models" in path:
            item.add_marker(pytest.mark.models)
        elif "test_seed" in path:
            item.add_marker(pytest.mark.seed)
        elif any(name in path for name in geometry_modules):
            item.add_marker(pytest.mark.geometry)

        item.add_marker(pytest.mark.unit)


@pytest.fixture
def two_region_store():
    """
    Region A = [0,10]x[0,10] (stat 5), region B = [10,40]x[0,10] (stat 20).

    Returns:
        GeometryStore: Store in the working CRS
    """
    return GeometryStore(
        [
            Region(1, box(0, 0, 10, 10), 5.0, crs=SRID),
            Region(2, box(10, 0, 40, 10), 20.0, crs=SRID),
        ],
        crs=SRID,
    )


@pytest.fixture
def split_store():
    """Region A = [0,10]x[0,10] (stat 10), region B = [10,20]x[0,10] (stat 30)."""
    return GeometryStore(
        [
            Region(1, box(0, 0, 10, 10), 10.0, crs=SRID),
            Region(2, box(10, 0, 20, 10), 30.0, crs=SRID),
        ],
        crs=SRID,
    )


@pytest.fixture
def straddling_catchment():
    """Catchment [6,16]x[0,10]: 40 area units in A, 60 in B."""
    return Catchment(box(6, 0, 16, 10), crs=SRID, id=100)


@pytest.fixture
def grid_store():
    """3x3 grid of unit squares; region id = 10*row + col, statistic = id."""
    regions = [
        Region(10 * row + col, box(col, row, col + 1, row + 1), float(10 * row + col), crs=SRID)
        for row in range(3)
        for col in range(3)
    ]
    return GeometryStore(regions, crs=SRID)


@pytest.fixture
def sample_pois():
    """Four facilities inside [0,3]x[0,3]."""
    return [
        PointOfInterest(1, "public", Point(0.5, 0.5), crs=SRID),
        PointOfInterest(2, "private", Point(2.5, 0.5), crs=SRID),
        PointOfInterest(3, "public", Point(0.5, 2.5), crs=SRID),
        PointOfInterest(4, "private", Point(2.2, 2.7), crs=SRID),
    ]


@pytest.fixture
def sample_regions_gdf():
    """
    Region layer as read from a file.

    Returns:
        gpd.GeoDataFrame: Two regions with a primary statistic and one extra attribute
    """
    return gpd.GeoDataFrame(
        {
            "id": [1, 2],
            "name": ["North", "South"],
            "statistic": [10.0, 30.0],
            "income": [100.0, 300.0],
            "geometry": [box(0, 0, 10, 10), box(10, 0, 20, 10)],
        },
        crs=f"EPSG:{SRID}",
    )


@pytest.fixture
def sample_facilities_gdf():
    """Three facilities, the third outside both sample regions."""
    return gpd.GeoDataFrame(
        {
            "id": [1, 2, 3],
            "name": ["School A", "School B", "School C"],
            "category": ["public", "private", "public"],
            "geometry": [Point(5, 5), Point(15, 5), Point(50, 50)],
        },
        crs=f"EPSG:{SRID}",
    )


@pytest.fixture
def mock_session():
    """MagicMock session whose query chain returns no rows by default."""
    session = MagicMock()
    session.query.return_value.order_by.return_value.all.return_value = []
    return session
