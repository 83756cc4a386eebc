"""
STORAGE_MIGRATION strategy: move tables to new storage on the same cluster.

Locations are translated into ``transfer.common_storage``. With distcp the
data is copied outside of Hive and only the metadata is re-pointed;
otherwise the table is archived and reloaded at its new location.
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
from hmsmirror.strategies.base import StrategyContext, build_table_schema
from hmsmirror.strategies.facts import TableFacts

logger = logging.getLogger(__name__)


def _with_distcp(
    ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit, location: str
) -> bool:
    left = unit.env(Environment.LEFT)
    right = unit.env(Environment.RIGHT)
    right.partitioned = left.partitioned
    right.partitions = dict(left.partitions)
    if not ctx.translator.translate_partition_locations(db, unit):
        return False

    left.add_issue(MessageCode.STORAGE_MIGRATION_DISTCP.format())
    left.add_sql(statements.USE_DESC, statements.use(db.name))
    left.add_sql(statements.SET_LOCATION_DESC, statements.set_table_location(unit.name, location))
    for spec, partition_location in right.partitions.items():
        left.add_sql(
            statements.SET_LOCATION_DESC,
            statements.set_partition_location(unit.name, spec, partition_location),
        )
    right.create_strategy = CreateStrategy.LEAVE
    return True


def _with_sql(
    ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit, facts: TableFacts, location: str
) -> bool:
    spec = CopySpec(
        Environment.LEFT,
        Environment.RIGHT,
        replace_location=not facts.acid,
        strip_location=facts.acid,
        location=location,
        take_ownership=ctx.takes_ownership(facts.managed),
    )
    if not build_table_schema(ctx, db, unit, spec):
        return False
    right = unit.env(Environment.RIGHT)
    right.create_strategy = CreateStrategy.CREATE

    left = unit.env(Environment.LEFT)
    archive = ctx.archive_name(unit.name)
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
    if not ctx.config.save_working_tables:
        left.add_cleanup_sql(statements.USE_DESC, statements.use(db.name))
        left.add_cleanup_sql(statements.DROP_ARCHIVE_DESC, statements.drop_table(archive))
    return True


def storage_migration(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    facts = TableFacts.from_unit(unit)
    left = unit.env(Environment.LEFT)
    if facts.view:
        left.add_issue(MessageCode.VIEW_NOT_RELOCATED.format())
        return False
    if not facts.native:
        unit.add_error(
            Environment.LEFT,
            MessageCode.NON_NATIVE_NOT_SUPPORTED.format(DataStrategy.STORAGE_MIGRATION.value),
        )
        return False

    distcp = ctx.config.transfer.storage_migration.distcp
    if facts.acid and distcp:
        unit.add_error(
            Environment.LEFT,
            MessageCode.ACID_NOT_ELIGIBLE.format("STORAGE_MIGRATION with distcp"),
        )
        return False

    original = ddl.get_location(left.definition)
    if original is None:
        unit.add_error(Environment.LEFT, MessageCode.LOCATION_NOT_FOUND.format(unit.name))
        return False
    location = ctx.translator.translate_table_location(
        db,
        unit,
        original,
        ctx.config.consolidation_level_base,
        table_type=ddl.table_type(left.definition),
    )
    logger.info("Relocating %s.%s to %s", db.name, unit.name, location)

    if distcp:
        return _with_distcp(ctx, db, unit, location)
    return _with_sql(ctx, db, unit, facts, location)
