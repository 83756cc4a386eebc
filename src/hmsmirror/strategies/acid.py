"""
ACID handling.

ACID tables crossing a Hive generation are staged through INTERMEDIATE.
In-place downgrades turn a transactional table into an external,
non-transactional one on the source cluster itself, either with
EXPORT/IMPORT or with SQL, chosen by partition count.
"""

from __future__ import annotations

import logging

from hmsmirror import ddl
from hmsmirror.messages import MessageCode
from hmsmirror.models import (
    CopySpec,
    CreateStrategy,
    DatabaseUnit,
    DataStrategy,
    Environment,
    MigrationUnit,
)
from hmsmirror.strategies import statements
from hmsmirror.strategies.base import StrategyContext, build_table_schema, export_location
from hmsmirror.strategies.decisions import resolve_acid_downgrade
from hmsmirror.strategies.facts import TableFacts

logger = logging.getLogger(__name__)


def acid(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    return ctx.delegate(db, unit, DataStrategy.INTERMEDIATE)


def hybrid_acid_downgrade_inplace(
    ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit
) -> bool:
    """Pick the EXPORT_IMPORT or SQL in-place downgrade for a table."""
    facts = TableFacts.from_unit(unit)
    resolution = resolve_acid_downgrade(facts, ctx.config, ctx.run_context)
    if resolution.issue:
        unit.add_issue(Environment.LEFT, resolution.issue)
    if resolution.error:
        unit.add_error(Environment.LEFT, resolution.error)
    if resolution.strategy is None:
        return False
    logger.info(
        "ACID downgrade of %s.%s uses %s", db.name, unit.name, resolution.strategy.value
    )
    return ctx.delegate(db, unit, resolution.strategy)


def _downgrade_spec(ctx: StrategyContext) -> CopySpec:
    return CopySpec(
        Environment.LEFT,
        Environment.RIGHT,
        make_external=True,
        make_non_transactional=True,
        take_ownership=ctx.takes_ownership(True),
        strip_location=True,
        bucket_threshold=ctx.config.migrate_acid.artificial_bucket_threshold,
    )


def _add_archive_cleanup(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> None:
    if ctx.config.save_working_tables:
        return
    left = unit.env(Environment.LEFT)
    left.add_cleanup_sql(statements.USE_DESC, statements.use(db.name))
    left.add_cleanup_sql(
        statements.DROP_ARCHIVE_DESC, statements.drop_table(ctx.archive_name(unit.name))
    )


def export_import_acid_downgrade_inplace(
    ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit
) -> bool:
    """EXPORT the table, archive it, and IMPORT it back as an external table."""
    facts = TableFacts.from_unit(unit)
    if not facts.acid:
        strategy = DataStrategy.EXPORT_IMPORT_ACID_DOWNGRADE_INPLACE.value
        unit.add_error(Environment.LEFT, MessageCode.NOT_ACID.format(strategy))
        return False

    build_table_schema(ctx, db, unit, _downgrade_spec(ctx))
    unit.env(Environment.RIGHT).create_strategy = CreateStrategy.CREATE

    left = unit.env(Environment.LEFT)
    location = export_location(ctx, db, unit)
    archive = ctx.archive_name(unit.name)
    left.add_sql(statements.USE_DESC, statements.use(db.name))
    left.add_sql(statements.EXPORT_DESC, statements.export_table(unit.name, location))
    left.add_sql(statements.RENAME_DESC, statements.rename_table(unit.name, archive))
    left.add_sql(
        statements.IMPORT_DESC, statements.import_table(unit.name, location, external=True)
    )
    if ctx.takes_ownership(True):
        left.add_sql(
            statements.SET_PROPERTY_DESC,
            statements.set_table_property(unit.name, ddl.EXTERNAL_TABLE_PURGE, "true"),
        )
    _add_archive_cleanup(ctx, db, unit)
    return True


def sql_acid_downgrade_inplace(
    ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit
) -> bool:
    """
    Archive the table and reload it into an external, non-transactional copy.

    Tables with more partitions than ``migrate_acid.partition_limit`` are
    refused.
    """
    config = ctx.config
    facts = TableFacts.from_unit(unit)
    if not facts.acid:
        strategy = DataStrategy.SQL_ACID_DOWNGRADE_INPLACE.value
        unit.add_error(Environment.LEFT, MessageCode.NOT_ACID.format(strategy))
        return False
    limit = config.migrate_acid.partition_limit
    if facts.partitioned and limit > 0 and facts.partition_count > limit:
        unit.add_error(
            Environment.LEFT,
            MessageCode.ACID_IN_PLACE_PARTITION_LIMIT.format(facts.partition_count, limit),
        )
        return False

    if not build_table_schema(ctx, db, unit, _downgrade_spec(ctx)):
        return False
    right = unit.env(Environment.RIGHT)
    right.create_strategy = CreateStrategy.CREATE

    left = unit.env(Environment.LEFT)
    archive = ctx.archive_name(unit.name)
    if ctx.run_context.left.legacy_hive:
        left.add_sql(statements.TEZ_EXECUTION_DESC, statements.SET_TEZ_AS_EXECUTION_ENGINE)
    left.add_sql(statements.USE_DESC, statements.use(db.name))
    left.add_sql(statements.RENAME_DESC, statements.rename_table(unit.name, archive))
    left.add_sql(statements.CREATE_DESC, ddl.render_create(right.definition))
    columns = ddl.partition_columns(left.definition) if facts.partitioned else []
    if columns:
        left.add_sql(statements.DYNAMIC_PARTITION_DESC, statements.SET_DYNAMIC_PARTITION)
        left.add_sql(statements.DYNAMIC_PARTITION_DESC, statements.SET_DYNAMIC_PARTITION_MODE)
    left.add_sql(
        statements.MOVE_DATA_DESC, statements.insert_overwrite(archive, unit.name, columns)
    )
    _add_archive_cleanup(ctx, db, unit)
    return True
