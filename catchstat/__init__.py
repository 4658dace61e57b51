"""
@file __init__.py
@brief Catchstat application package initialization

@details
Area-weighted aggregation of regional statistics over catchment polygons,
served through a FastAPI backend on PostGIS.

**Package Structure:**
- api/: FastAPI route handlers and request/response schemas
- models/: In-memory records and SQLAlchemy ORM models
- services/: Geometry store, intersection, aggregation, batch, catchments, linkage
- db/: Database configuration, session management, and initialization
- etl/: GeoDataFrame conversion and PostGIS ingestion
- core/: Configuration, logging, errors, cache and health checks

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see main for FastAPI application setup
@see services.aggregation for the weighted mean
"""
