"""
Database Seeding and Initialization Tests

Tests for database initialization and ETL-driven seeding.

Test Classes:
- TestWaitForDatabase: Connection retry logic
- TestTableRowCount: Seed status checks
- TestCreateSchema: PostGIS extension and tables
- TestSeedDatabase: Region/facility ETL invocation
- TestInitializeDatabase: Complete initialization workflow

Author: Catchstat Project
License: AGPL-3.0
"""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from catchstat.db.seed import (
    create_schema,
    initialize_database,
    seed_database,
    table_row_count,
    wait_for_database,
)


def refused():
    return OperationalError("SELECT 1", {}, Exception("Connection refused"))


@pytest.fixture
def engine():
    return MagicMock()


@pytest.fixture
def source_files(tmp_path):
    """Existing region and facility files."""
    regions = tmp_path / "regions.gpkg"
    facilities = tmp_path / "facilities.gpkg"
    regions.write_bytes(b"")
    facilities.write_bytes(b"")
    with patch("catchstat.db.seed.REGIONS_PATH", str(regions)), \
            patch("catchstat.db.seed.FACILITIES_PATH", str(facilities)):
        yield str(regions), str(facilities)


class TestWaitForDatabase:
    """Test database connection retry logic."""

    def test_success(self, engine):
        assert wait_for_database(engine, max_retries=1) is True

    def test_timeout(self, engine):
        engine.connect.side_effect = refused()
        assert wait_for_database(engine, max_retries=2, retry_delay=0) is False
        assert engine.connect.call_count == 2

    def test_recovers_after_retry(self, engine):
        engine.connect.side_effect = [refused(), MagicMock()]
        assert wait_for_database(engine, max_retries=3, retry_delay=0) is True


class TestTableRowCount:
    """Test table_row_count()."""

    def test_missing_table(self, engine):
        with patch("catchstat.db.seed.inspect") as inspect:
            inspect.return_value.get_table_names.return_value = []
            assert table_row_count(engine, "statistical_regions") == 0

    def test_existing_table(self, engine):
        conn = engine.connect.return_value.__enter__.return_value
        conn.execute.return_value.scalar.return_value = 12
        with patch("catchstat.db.seed.inspect") as inspect:
            inspect.return_value.get_table_names.return_value = ["statistical_regions"]
            assert table_row_count(engine, "statistical_regions") == 12


class TestCreateSchema:
    """Test create_schema()."""

    def test_creates_extension_and_tables(self, engine):
        with patch("catchstat.db.base.Base.metadata.create_all") as create_all:
            create_schema(engine)

        statement = engine.begin.return_value.__enter__.return_value.execute.call_args[0][0]
        assert "postgis" in str(statement)
        create_all.assert_called_once_with(bind=engine)


class TestSeedDatabase:
    """Test seed_database()."""

    def test_empty_tables_are_seeded(self, engine, source_files):
        regions, facilities = source_files
        with patch("catchstat.db.seed.table_row_count", return_value=0), \
                patch("catchstat.etl.ingest_regions.run_etl", return_value=True) as run_etl, \
                patch("catchstat.etl.ingest_regions.run_facility_etl", return_value=True) as run_facility_etl:
            assert seed_database(engine) is True

        run_etl.assert_called_once_with(regions, engine=engine)
        run_facility_etl.assert_called_once_with(facilities, engine=engine)

    def test_seeded_tables_are_skipped(self, engine, source_files):
        with patch("catchstat.db.seed.table_row_count", return_value=5), \
                patch("catchstat.etl.ingest_regions.run_etl") as run_etl, \
                patch("catchstat.etl.ingest_regions.run_facility_etl") as run_facility_etl:
            assert seed_database(engine) is True

        run_etl.assert_not_called()
        run_facility_etl.assert_not_called()

    def test_missing_source_file(self, engine, tmp_path):
        with patch("catchstat.db.seed.REGIONS_PATH", str(tmp_path / "none.gpkg")), \
                patch("catchstat.db.seed.FACILITIES_PATH", str(tmp_path / "none.gpkg")), \
                patch("catchstat.db.seed.table_row_count", return_value=0), \
                patch("catchstat.etl.ingest_regions.run_etl") as run_etl:
            assert seed_database(engine) is True
        run_etl.assert_not_called()

    def test_etl_failure(self, engine, source_files):
        with patch("catchstat.db.seed.table_row_count", return_value=0), \
                patch("catchstat.etl.ingest_regions.run_etl", return_value=False):
            assert seed_database(engine) is False


class TestInitializeDatabase:
    """Test initialize_database()."""

    def test_unreachable_database(self, engine):
        engine.connect.side_effect = refused()
        with patch("catchstat.db.seed.create_schema") as create:
            assert initialize_database(engine) is False
        create.assert_not_called()

    def test_full_workflow(self, engine):
        with patch("catchstat.db.seed.create_schema") as create, \
                patch("catchstat.db.seed.seed_database", return_value=True) as seed:
            assert initialize_database(engine) is True
        create.assert_called_once_with(engine)
        seed.assert_called_once_with(engine)

    def test_schema_failure(self, engine):
        with patch("catchstat.db.seed.create_schema", side_effect=refused()), \
                patch("catchstat.db.seed.seed_database") as seed:
            assert initialize_database(engine) is False
        seed.assert_not_called()
