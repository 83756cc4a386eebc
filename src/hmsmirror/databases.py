"""
Database-level SQL.

Database DDL is emitted once per database, before any of its tables, on
the environment the run targets: RIGHT for migrations and LEFT for DUMP
and STORAGE_MIGRATION.
"""

from __future__ import annotations

import logging

from hmsmirror.config import RunConfig
from hmsmirror.location import LocationTranslator, strip_namespace
from hmsmirror.models import DatabaseUnit, DataStrategy, Environment, TableType
from hmsmirror.strategies import statements

logger = logging.getLogger(__name__)

LOCATION = "location"
MANAGED_LOCATION = "managed_location"
OWNER = "owner"


def _target_locations(
    config: RunConfig,
    translator: LocationTranslator,
    db: DatabaseUnit,
    name: str,
) -> tuple[str | None, str | None]:
    """External and managed locations the database gets on its target."""
    namespace = config.target_namespace or ""
    plan = translator.warehouse_for(db.name)
    if plan is not None:
        return (
            f"{namespace}{plan.external_directory}/{name}.db",
            f"{namespace}{plan.managed_directory}/{name}.db",
        )

    location = db.get_property(Environment.LEFT, LOCATION)
    managed = db.get_property(Environment.LEFT, MANAGED_LOCATION)
    external_target = None
    managed_target = None
    if location:
        path = translator.translate(strip_namespace(location), TableType.EXTERNAL_TABLE)
        if name != db.name:
            path = path.replace(f"/{db.name}.db", f"/{name}.db", 1)
        external_target = namespace + path
    if managed:
        path = translator.translate(strip_namespace(managed), TableType.MANAGED_TABLE)
        if name != db.name:
            path = path.replace(f"/{db.name}.db", f"/{name}.db", 1)
        managed_target = namespace + path
    return external_target, managed_target


def build_database_sql(
    config: RunConfig, translator: LocationTranslator, db: DatabaseUnit
) -> Environment:
    """
    Append the database DDL of a run to ``db.sql``.

    Args:
        config: Run configuration
        translator: Translator of the run (GLM and warehouse plans)
        db: Scanned database

    Returns:
        The environment the statements were added to
    """
    strategy = config.data_strategy

    if strategy == DataStrategy.DUMP:
        create = statements.create_database(db.name)
        db.add_sql(Environment.LEFT, statements.CREATE_DATABASE_DESC, create)
        location = db.get_property(Environment.LEFT, LOCATION)
        if location:
            db.add_sql(
                Environment.LEFT,
                statements.DATABASE_LOCATION_DESC,
                statements.set_database_location(db.name, location),
            )
        return Environment.LEFT

    if strategy == DataStrategy.STORAGE_MIGRATION:
        external, managed = _target_locations(config, translator, db, db.name)
        if external:
            db.add_sql(
                Environment.LEFT,
                statements.DATABASE_LOCATION_DESC,
                statements.set_database_location(db.name, external),
            )
        if managed and not config.left.legacy_hive:
            db.add_sql(
                Environment.LEFT,
                statements.DATABASE_MANAGED_LOCATION_DESC,
                statements.set_database_managed_location(db.name, managed),
            )
        return Environment.LEFT

    name = db.resolved_name
    create = statements.create_database(name)
    db.add_sql(Environment.RIGHT, statements.CREATE_DATABASE_DESC, create)
    external, managed = _target_locations(config, translator, db, name)
    right_location = db.get_property(Environment.RIGHT, LOCATION)
    right_managed = db.get_property(Environment.RIGHT, MANAGED_LOCATION)
    if external and external != right_location:
        db.add_sql(
            Environment.RIGHT,
            statements.DATABASE_LOCATION_DESC,
            statements.set_database_location(name, external),
        )
    if managed and managed != right_managed and not config.right.legacy_hive:
        db.add_sql(
            Environment.RIGHT,
            statements.DATABASE_MANAGED_LOCATION_DESC,
            statements.set_database_managed_location(name, managed),
        )
    owner = db.get_property(Environment.LEFT, OWNER)
    if owner and config.ownership_transfer.database:
        db.add_sql(
            Environment.RIGHT,
            statements.DATABASE_OWNER_DESC,
            statements.set_database_owner(name, owner),
        )
    logger.info(
        "Database %s: %d statements for %s",
        db.name,
        len(db.sql.get(Environment.RIGHT, [])),
        name,
    )
    return Environment.RIGHT
