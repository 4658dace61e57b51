"""
Test Suite for Catchstat

Unit tests and fixtures for the catchment-weighted regional statistics
backend. No test needs a running PostgreSQL or Redis; both are mocked.

Test Categories:
- test_intersection: Geometry repair and polygonal overlay
- test_geometry_store: Region store, spatial lookups, CRS handling
- test_aggregation: Area-weighted mean and its properties
- test_batch: Batch runs, error isolation, cancellation
- test_catchments: Voronoi and buffer catchment construction
- test_linkage: POI to catchment/region linkage
- test_pipeline: Facility batch orchestration and persistence
- test_etl: GeoDataFrame conversion and PostGIS ingestion
- test_models: In-memory records and ORM models
- test_api: FastAPI endpoints and error mapping
- test_cache: Redis cache wrapper
- test_seed: Database initialization
- test_resilience: Health checks and database error handling
- conftest.py: Shared fixtures and test configuration

Running Tests:
    pytest              # Run all tests
    pytest -v           # Verbose output
    pytest tests/test_aggregation.py -v  # Run specific test file
    pytest --cov        # With coverage report

Author: Catchstat Project
License: AGPL-3.0
"""
