"""
Statistical Region ETL (Extract, Transform, Load) Module

This module converts region and facility files into the records used by the
aggregation core and loads statistical regions into PostGIS. The pipeline:

1. EXTRACT: Load a vector file (GeoJSON, Shapefile, GeoPackage) with geopandas
2. TRANSFORM: Reproject to the working CRS, repair geometries, select columns
3. LOAD: Populate the statistical_regions table (and facilities, if a facility
   file is configured)

It also provides the GeoDataFrame <-> record conversions used by notebooks
and scripts that run the aggregation without a database:
- regions_from_geodataframe: GeoDataFrame -> GeometryStore
- pois_from_geodataframe: GeoDataFrame -> PointOfInterest records
- catchments_from_geodataframe: GeoDataFrame -> Catchment records
- attach_results: BatchReport -> extra columns on the POI GeoDataFrame

Author: Catchstat Project
License: AGPL-3.0
"""

import logging
import os
from typing import Dict, Iterable, List, Mapping, Optional

import geopandas as gpd
import pandas as pd
from geoalchemy2 import Geometry
from shapely.geometry import MultiPolygon, Polygon
from sqlalchemy import JSON

from catchstat.core.config import (
    CATCHMENTS_PATH,
    FACILITIES_PATH,
    REGIONS_ID_COLUMN,
    REGIONS_NAME_COLUMN,
    REGIONS_PATH,
    REGIONS_STATISTIC_COLUMN,
    SRID,
)
from catchstat.core.exceptions import GeometryError
from catchstat.models.records import Catchment, PointOfInterest, Region
from catchstat.services.batch import BatchReport
from catchstat.services.geometry_store import GeometryStore
from catchstat.services.intersection import repair_geometry

logger = logging.getLogger(__name__)


def load_data(path: str) -> Optional[gpd.GeoDataFrame]:
    """
    Load a vector file into a GeoDataFrame.

    Args:
        path (str): Path to any format GDAL/pyogrio can read

    Returns:
        gpd.GeoDataFrame: Loaded data, or None if the file is missing or unreadable
    """
    if not os.path.exists(path):
        logger.warning(f"File not found: {path}")
        return None

    logger.info(f"Loading vector file: {path}")
    try:
        gdf = gpd.read_file(path)
        logger.info(f"  → Loaded {len(gdf)} features (CRS: {gdf.crs})")
        return gdf
    except Exception as e:
        logger.error(f"Error reading {path}: {e}")
        return None


def reproject_and_clean(gdf: gpd.GeoDataFrame, srid: int = SRID) -> gpd.GeoDataFrame:
    """
    Reproject to the working CRS and remove null or empty geometries.

    A layer without CRS metadata is assumed to already be in the working CRS;
    this is logged because it cannot be verified.

    Args:
        gdf (gpd.GeoDataFrame): Input layer
        srid (int): EPSG code of the working planar CRS

    Returns:
        gpd.GeoDataFrame: Cleaned layer in EPSG:<srid>
    """
    logger.info("Reprojecting and cleaning geometry...")

    if gdf.crs is None:
        logger.warning(f"  → Layer has no CRS; assuming EPSG:{srid}")
        gdf = gdf.set_crs(epsg=srid)
    elif gdf.crs.to_epsg() != srid:
        logger.info(f"  → Reprojecting from {gdf.crs} to EPSG:{srid}")
        gdf = gdf.to_crs(epsg=srid)

    initial_count = len(gdf)
    gdf = gdf[gdf.geometry.notnull() & ~gdf.geometry.is_empty]
    removed = initial_count - len(gdf)
    if removed > 0:
        logger.warning(f"  → Removed {removed} features with null or empty geometry")

    return gdf


def repair_geometries(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Repair invalid polygons, dropping features that cannot be repaired.

    Args:
        gdf (gpd.GeoDataFrame): Polygon layer

    Returns:
        gpd.GeoDataFrame: Layer with valid polygonal geometries only
    """
    logger.info("Repairing geometries...")

    repaired = []
    keep = []
    for index, geom in gdf.geometry.items():
        try:
            repaired.append(repair_geometry(geom, f"feature {index}"))
            keep.append(index)
        except GeometryError as e:
            logger.warning(f"  → Dropping feature {index}: {e}")

    result = gdf.loc[keep].copy()
    result[gdf.geometry.name] = gpd.GeoSeries(repaired, index=keep, crs=gdf.crs)
    invalid = int((~gdf.geometry.is_valid).sum())
    if invalid:
        logger.info(f"  → {invalid} invalid geometries repaired or dropped")
    return result


def attribute_value(value) -> Optional[float]:
    """Numeric attribute as a float, or None when missing (JSON has no NaN)."""
    number = pd.to_numeric(value, errors="coerce")
    return None if pd.isna(number) else float(number)


def regions_from_geodataframe(gdf: gpd.GeoDataFrame,
                              id_column: str = REGIONS_ID_COLUMN,
                              statistic_column: str = REGIONS_STATISTIC_COLUMN,
                              attribute_columns: Optional[Iterable[str]] = None) -> GeometryStore:
    """
    Build a GeometryStore from a region layer.

    Args:
        gdf (gpd.GeoDataFrame): Region polygons in a planar CRS
        id_column (str): Integer identifier column
        statistic_column (str): Column averaged by the aggregator
        attribute_columns (Iterable[str]): Further numeric columns to carry

    Returns:
        GeometryStore: Store tagged with the layer's CRS
    """
    attribute_columns = list(attribute_columns or [])
    geometry_column = gdf.geometry.name
    regions = []
    for _, row in gdf.iterrows():
        value = pd.to_numeric(row[statistic_column], errors="coerce")
        attributes = {
            column: attribute_value(row[column])
            for column in attribute_columns
        }
        regions.append(Region(
            id=int(row[id_column]),
            geometry=row[geometry_column],
            statistic=float("nan") if pd.isna(value) else float(value),
            crs=gdf.crs,
            attributes=attributes,
        ))
    return GeometryStore(regions, crs=gdf.crs)


def pois_from_geodataframe(gdf: gpd.GeoDataFrame, id_column: str = "id",
                           category_column: Optional[str] = None) -> List[PointOfInterest]:
    """
    Convert a facility layer into PointOfInterest records.

    Non-point geometries (e.g. building footprints) are represented by a
    point guaranteed to lie inside them.
    """
    geometry_column = gdf.geometry.name
    pois = []
    for _, row in gdf.iterrows():
        geom = row[geometry_column]
        if geom is None or geom.is_empty:
            logger.warning(f"Skipping POI {row[id_column]} without geometry")
            continue
        if geom.geom_type != "Point":
            geom = geom.representative_point()
        category = "" if category_column is None or pd.isna(row[category_column]) else str(row[category_column])
        pois.append(PointOfInterest(id=int(row[id_column]), category=category, point=geom, crs=gdf.crs))
    return pois


def catchments_from_geodataframe(gdf: gpd.GeoDataFrame, id_column: str = "id") -> Dict[int, Catchment]:
    """
    Convert authoritative catchment polygons, keyed by the POI id they belong to.
    """
    geometry_column = gdf.geometry.name
    catchments = {}
    for _, row in gdf.iterrows():
        if row[geometry_column] is None or row[geometry_column].is_empty:
            continue
        key = int(row[id_column])
        catchments[key] = Catchment(row[geometry_column], crs=gdf.crs, id=key)
    return catchments


def attach_results(pois_gdf: gpd.GeoDataFrame, report: BatchReport,
                   baseline: Optional[Mapping[int, Optional[float]]] = None,
                   id_column: str = "id") -> gpd.GeoDataFrame:
    """
    Attach batch outcomes to the POI layer.

    Adds ``weighted_statistic`` and ``outcome`` columns, plus
    ``baseline_statistic`` when a baseline mapping is given. Failed outcomes
    leave ``weighted_statistic`` missing; they are never filled with zero.

    Returns:
        gpd.GeoDataFrame: Copy of ``pois_gdf`` with the extra columns
    """
    results = {r.poi_id: r for r in report.results}
    out = pois_gdf.copy()
    ids = out[id_column].astype(int)
    out["weighted_statistic"] = [results[i].value if i in results else None for i in ids]
    out["outcome"] = [results[i].outcome.value if i in results else None for i in ids]
    if baseline is not None:
        out["baseline_statistic"] = [baseline.get(i) for i in ids]
    return out


def prepare_for_database(gdf: gpd.GeoDataFrame,
                         id_column: str = REGIONS_ID_COLUMN,
                         name_column: str = REGIONS_NAME_COLUMN,
                         statistic_column: str = REGIONS_STATISTIC_COLUMN,
                         attribute_columns: Optional[Iterable[str]] = None) -> gpd.GeoDataFrame:
    """
    Select and rename columns to match the statistical_regions schema.

    Polygons are promoted to MultiPolygons so every row fits the column type.

    Returns:
        gpd.GeoDataFrame: Ready for to_postgis()
    """
    logger.info("Preparing regions for database ingestion...")
    attribute_columns = list(attribute_columns or [])

    output = gpd.GeoDataFrame(
        {
            "id": gdf[id_column].astype(int).values,
            "name": gdf[name_column].astype(str).values if name_column in gdf.columns else None,
            "statistic": pd.to_numeric(gdf[statistic_column], errors="coerce").values,
            "attributes": [
                {c: attribute_value(row[c]) for c in attribute_columns}
                for _, row in gdf.iterrows()
            ],
            "geom": [
                MultiPolygon([geom]) if isinstance(geom, Polygon) else geom
                for geom in gdf.geometry
            ],
        },
        geometry="geom",
        crs=gdf.crs,
    )

    logger.info(f"  → {len(output)} regions ready for ingestion")
    return output


def ingest_to_postgis(output_gdf: gpd.GeoDataFrame, engine, srid: int = SRID) -> bool:
    """
    Append prepared regions to the statistical_regions table.

    Returns:
        bool: True if successful, False otherwise
    """
    logger.info("Ingesting regions into PostGIS...")
    try:
        output_gdf.to_postgis(
            "statistical_regions",
            engine,
            if_exists="append",
            index=False,
            dtype={"geom": Geometry("MULTIPOLYGON", srid=srid), "attributes": JSON},
        )
        logger.info(f"  → {len(output_gdf)} regions ingested successfully")
        return True
    except Exception as e:
        logger.error(f"Error during PostGIS ingestion: {e}")
        return False


def prepare_facilities_for_database(facilities_gdf: gpd.GeoDataFrame,
                                    catchments_gdf: Optional[gpd.GeoDataFrame] = None,
                                    id_column: str = "id", name_column: str = "name",
                                    category_column: str = "category") -> gpd.GeoDataFrame:
    """
    Match the facilities schema: one POINT per facility plus its catchment, if known.

    Non-point facility geometries are reduced to a representative point.
    Catchments are joined on ``id_column``; facilities without one get NULL
    and are approximated at aggregation time.

    Returns:
        gpd.GeoDataFrame: Ready for to_postgis()
    """
    logger.info("Preparing facilities for database ingestion...")

    pois = pois_from_geodataframe(
        facilities_gdf,
        id_column=id_column,
        category_column=category_column if category_column in facilities_gdf.columns else None,
    )
    names = {}
    if name_column in facilities_gdf.columns:
        names = dict(zip(facilities_gdf[id_column].astype(int), facilities_gdf[name_column].astype(str)))

    catchments = {}
    if catchments_gdf is not None:
        catchments = catchments_from_geodataframe(catchments_gdf, id_column=id_column)
        unmatched = set(catchments) - {poi.id for poi in pois}
        if unmatched:
            logger.warning(f"  → {len(unmatched)} catchments have no matching facility: {sorted(unmatched)}")

    srid = facilities_gdf.crs.to_epsg() if facilities_gdf.crs is not None else SRID

    def _ewkt(geom):
        geom = MultiPolygon([geom]) if isinstance(geom, Polygon) else geom
        return f"SRID={srid};{geom.wkt}"

    output = gpd.GeoDataFrame(
        {
            "id": [poi.id for poi in pois],
            "name": [names.get(poi.id) for poi in pois],
            "category": [poi.category or None for poi in pois],
            "catchment": [
                _ewkt(catchments[poi.id].geometry) if poi.id in catchments else None
                for poi in pois
            ],
            "location": [poi.point for poi in pois],
        },
        geometry="location",
        crs=facilities_gdf.crs,
    )

    logger.info(f"  → {len(output)} facilities ready ({len(catchments)} with catchment)")
    return output


def ingest_facilities(output_gdf: gpd.GeoDataFrame, engine, srid: int = SRID) -> bool:
    """
    Append prepared facilities to the facilities table.

    Catchments travel as EWKT text and are converted to geometries by the
    Geometry column type.

    Returns:
        bool: True if successful, False otherwise
    """
    logger.info("Ingesting facilities into PostGIS...")
    try:
        output_gdf.to_postgis(
            "facilities",
            engine,
            if_exists="append",
            index=False,
            dtype={
                "location": Geometry("POINT", srid=srid),
                "catchment": Geometry("MULTIPOLYGON", srid=srid),
            },
        )
        logger.info(f"  → {len(output_gdf)} facilities ingested successfully")
        return True
    except Exception as e:
        logger.error(f"Error during PostGIS ingestion: {e}")
        return False


def run_facility_etl(path: str = FACILITIES_PATH, catchments_path: str = CATCHMENTS_PATH,
                     engine=None) -> bool:
    """
    Load facilities (and their authoritative catchments, where available).

    Returns:
        bool: True if the pipeline succeeds, False if the facility file is missing
        or ingestion fails
    """
    logger.info("Starting facility ETL...")
    if engine is None:
        from catchstat.db.database import engine

    facilities = load_data(path)
    if facilities is None:
        logger.error("Facility file missing. Aborting facility ETL.")
        return False
    facilities = reproject_and_clean(facilities)

    catchments = load_data(catchments_path)
    if catchments is not None:
        catchments = repair_geometries(reproject_and_clean(catchments))
    else:
        logger.info("No authoritative catchments; all will be approximated")

    output_gdf = prepare_facilities_for_database(facilities, catchments)
    return ingest_facilities(output_gdf, engine)


def run_etl(path: str = REGIONS_PATH, engine=None,
            attribute_columns: Optional[Iterable[str]] = None) -> bool:
    """
    Execute the complete region ETL pipeline.

    Returns:
        bool: True if the pipeline succeeds, False if any step fails
    """
    logger.info("=" * 70)
    logger.info("STARTING STATISTICAL REGION ETL PIPELINE")
    logger.info("=" * 70)

    if engine is None:
        from catchstat.db.database import engine

    logger.info("[STEP 1] EXTRACT - Loading source data...")
    regions = load_data(path)
    if regions is None:
        logger.critical("CRITICAL ERROR: Region file missing. Aborting ETL.")
        return False

    logger.info("[STEP 2] TRANSFORM - Processing data...")
    regions = reproject_and_clean(regions)
    regions = repair_geometries(regions)

    logger.info("[STEP 3] LOAD - Ingesting into database...")
    output_gdf = prepare_for_database(regions, attribute_columns=attribute_columns)
    if not ingest_to_postgis(output_gdf, engine):
        return False

    logger.info("=" * 70)
    logger.info("✓ ETL PIPELINE COMPLETED SUCCESSFULLY")
    logger.info("=" * 70)
    return True


if __name__ == "__main__":
    from catchstat.core.logging import setup_logging

    setup_logging()
    success = run_etl()
    if success and os.path.exists(FACILITIES_PATH):
        success = run_facility_etl()
    exit(0 if success else 1)
