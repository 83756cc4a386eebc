"""
Unit tests for database-level SQL.

Tests for:
- CREATE DATABASE and location statements on the target
- Owner transfer
- DUMP and STORAGE_MIGRATION on the source
- Warehouse plans and renamed databases
"""

from hmsmirror.databases import build_database_sql
from hmsmirror.location import LocationTranslator
from hmsmirror.models import DatabaseUnit, Environment
from tests.conftest import build_config
from tests.fixtures import DR, MANAGED_LOCATION, SALES_LOCATION

CREATE = "CREATE DATABASE IF NOT EXISTS `sales`"
EXTERNAL_TARGET = f"{DR}/warehouse/external/sales.db"


def scanned(
    resolved_name: str = "sales",
    *,
    managed: bool = False,
    right: dict[str, str] | None = None,
) -> DatabaseUnit:
    db = DatabaseUnit(name="sales", resolved_name=resolved_name)
    properties = {"location": SALES_LOCATION, "owner": "etl"}
    if managed:
        properties["managed_location"] = MANAGED_LOCATION
    db.properties[Environment.LEFT] = properties
    if right is not None:
        db.properties[Environment.RIGHT] = right
    return db


def build(db: DatabaseUnit, **overrides) -> Environment:
    config = build_config(**overrides)
    translator = LocationTranslator(config, enable_tracing=False)
    return build_database_sql(config, translator, db)


def actions(db: DatabaseUnit, environment: Environment) -> list[str]:
    return [s.action for s in db.sql.get(environment, [])]


class TestTargetDatabase:
    """Tests for migrations to the RIGHT cluster."""

    def test_create_and_location(self):
        db = scanned()
        assert build(db) == Environment.RIGHT
        assert actions(db, Environment.RIGHT) == [
            CREATE,
            f'ALTER DATABASE `sales` SET LOCATION "{EXTERNAL_TARGET}"',
        ]
        assert Environment.LEFT not in db.sql

    def test_managed_location_keeps_relative_path(self):
        db = scanned(managed=True)
        build(db)
        managed_target = f"{DR}/warehouse/tablespace/managed/hive/sales.db"
        assert (
            f'ALTER DATABASE `sales` SET MANAGEDLOCATION "{managed_target}"'
            in actions(db, Environment.RIGHT)
        )

    def test_legacy_target_skips_managed_location(self):
        db = scanned(managed=True)
        build(db, left={"legacy_hive": True}, right={"legacy_hive": True})
        assert not any("MANAGEDLOCATION" in a for a in actions(db, Environment.RIGHT))

    def test_location_already_in_place(self):
        db = scanned(right={"location": EXTERNAL_TARGET})
        build(db)
        assert actions(db, Environment.RIGHT) == [CREATE]

    def test_common_storage_namespace(self):
        db = scanned()
        build(db, transfer={"common_storage": "s3a://shared"})
        assert (
            'ALTER DATABASE `sales` SET LOCATION "s3a://shared/warehouse/external/sales.db"'
            in actions(db, Environment.RIGHT)
        )

    def test_owner_transfer(self):
        db = scanned()
        build(db, ownership_transfer={"database": True})
        assert actions(db, Environment.RIGHT)[-1] == "ALTER DATABASE `sales` SET OWNER USER `etl`"

    def test_owner_not_transferred_by_default(self):
        db = scanned()
        build(db)
        assert not any("OWNER" in a for a in actions(db, Environment.RIGHT))

    def test_renamed_database(self):
        db = scanned(resolved_name="archive_sales")
        build(db, database_prefix="archive_")
        assert actions(db, Environment.RIGHT) == [
            "CREATE DATABASE IF NOT EXISTS `archive_sales`",
            f'ALTER DATABASE `archive_sales` SET LOCATION "{DR}/warehouse/external/'
            'archive_sales.db"',
        ]

    def test_without_location(self):
        db = DatabaseUnit(name="sales", resolved_name="sales")
        build(db)
        assert actions(db, Environment.RIGHT) == [CREATE]


class TestWarehousePlans:
    def test_plan_directories(self):
        db = scanned()
        config = build_config()
        translator = LocationTranslator(config, enable_tracing=False)
        translator.warehouse_builder.add_warehouse_plan("sales", "/ext", "/managed")
        build_database_sql(config, translator, db)
        assert actions(db, Environment.RIGHT) == [
            CREATE,
            f'ALTER DATABASE `sales` SET LOCATION "{DR}/ext/sales.db"',
            f'ALTER DATABASE `sales` SET MANAGEDLOCATION "{DR}/managed/sales.db"',
        ]

    def test_default_warehouse(self):
        db = scanned()
        build(
            db,
            transfer={"warehouse": {"external_directory": "/ext", "managed_directory": "/mgd"}},
        )
        assert f'ALTER DATABASE `sales` SET LOCATION "{DR}/ext/sales.db"' in actions(
            db, Environment.RIGHT
        )


class TestSourceDatabase:
    """Tests for strategies that write to the LEFT cluster."""

    def test_dump(self):
        db = scanned()
        assert build(db, data_strategy="DUMP") == Environment.LEFT
        assert actions(db, Environment.LEFT) == [
            CREATE,
            f'ALTER DATABASE `sales` SET LOCATION "{SALES_LOCATION}"',
        ]
        assert Environment.RIGHT not in db.sql

    def test_storage_migration(self):
        db = scanned(managed=True)
        environment = build(
            db, data_strategy="STORAGE_MIGRATION", transfer={"common_storage": "s3a://new"}
        )
        assert environment == Environment.LEFT
        assert actions(db, Environment.LEFT) == [
            'ALTER DATABASE `sales` SET LOCATION "s3a://new/warehouse/external/sales.db"',
            'ALTER DATABASE `sales` SET MANAGEDLOCATION '
            '"s3a://new/warehouse/tablespace/managed/hive/sales.db"',
        ]
        assert Environment.RIGHT not in db.sql
