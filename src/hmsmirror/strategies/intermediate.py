"""
INTERMEDIATE strategy: stage data through storage both clusters can reach.

With ACID tables or intermediate storage the LEFT cluster first copies the
table into a TRANSFER table on the staging storage. The RIGHT cluster then
reads the staged files (or the source files directly) through a shadow
table and copies them into the target table.
"""

from __future__ import annotations

import logging

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
from hmsmirror.strategies.base import (
    StrategyContext,
    apply_create_decision,
    build_migration_sql,
    build_table_schema,
    emit_create_strategy_sql,
    emit_working_table,
    transfer_location,
)
from hmsmirror.strategies.decisions import decide_intermediate_create
from hmsmirror.strategies.facts import TableFacts
from hmsmirror.strategies.sql import right_copy_spec

logger = logging.getLogger(__name__)


def _right_spec(ctx: StrategyContext, facts: TableFacts) -> CopySpec:
    if not facts.acid:
        return right_copy_spec(ctx, facts)
    acid = ctx.config.migrate_acid
    if acid.downgrade:
        spec = CopySpec(
            Environment.LEFT,
            Environment.RIGHT,
            make_external=True,
            make_non_transactional=True,
            take_ownership=ctx.takes_ownership(True),
            replace_location=True,
            bucket_threshold=acid.artificial_bucket_threshold,
        )
        if ctx.config.reset_to_default_location:
            spec.replace_location = False
            spec.strip_location = True
        return spec
    return CopySpec(Environment.LEFT, Environment.RIGHT, strip_location=True)


def intermediate(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    config = ctx.config
    facts = TableFacts.from_unit(unit)
    if not facts.native:
        unit.add_error(
            Environment.LEFT,
            MessageCode.NON_NATIVE_NOT_SUPPORTED.format(DataStrategy.INTERMEDIATE.value),
        )
        return False

    decision = decide_intermediate_create(
        facts, sync=config.sync, create_if_not_exists=ctx.run_context.right.create_if_not_exists
    )
    if not apply_create_decision(unit, decision):
        return False

    left = unit.env(Environment.LEFT)
    right = unit.env(Environment.RIGHT)
    if not facts.left_exists:
        right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
        emit_create_strategy_sql(ctx, unit)
        return True

    with_transfer = facts.acid or bool(config.transfer.intermediate_storage)
    staged = transfer_location(ctx, db, unit)

    if with_transfer:
        transfer_spec = CopySpec(
            Environment.LEFT,
            Environment.TRANSFER,
            make_external=True,
            make_non_transactional=True,
            take_ownership=False,
            replace_location=True,
            location=staged,
            table_name_prefix=config.transfer.transfer_prefix,
            bucket_threshold=config.migrate_acid.artificial_bucket_threshold,
        )
        build_table_schema(ctx, db, unit, transfer_spec)
        shadow_spec = CopySpec(
            Environment.LEFT,
            Environment.SHADOW,
            make_external=True,
            make_non_transactional=True,
            take_ownership=False,
            replace_location=True,
            location=staged,
            table_name_prefix=config.transfer.shadow_prefix,
            bucket_threshold=config.migrate_acid.artificial_bucket_threshold,
        )
    else:
        shadow_spec = CopySpec(
            Environment.LEFT,
            Environment.SHADOW,
            upgrade=config.convert_managed,
            make_external=True,
            take_ownership=False,
            table_name_prefix=config.transfer.shadow_prefix,
        )
    build_table_schema(ctx, db, unit, shadow_spec)
    if not build_table_schema(ctx, db, unit, _right_spec(ctx, facts)):
        return False

    if with_transfer:
        if ctx.run_context.left.legacy_hive:
            left.add_sql(statements.TEZ_EXECUTION_DESC, statements.SET_TEZ_AS_EXECUTION_ENGINE)
        left.add_sql(statements.USE_DESC, statements.use(db.name))
        transfer = unit.env(Environment.TRANSFER)
        emit_working_table(
            unit,
            Environment.TRANSFER,
            Environment.LEFT,
            create_desc=statements.CREATE_TRANSFER_DESC,
            drop_desc=statements.DROP_TRANSFER_DESC,
            repair=False,
        )
        build_migration_sql(
            ctx, db, unit, Environment.LEFT, Environment.LEFT, Environment.TRANSFER
        )
        if not config.save_working_tables:
            drop = statements.drop_table(transfer.name)
            left.add_cleanup_sql(statements.USE_DESC, statements.use(db.name))
            left.add_cleanup_sql(statements.DROP_TRANSFER_DESC, drop)

    right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
    emit_working_table(
        unit,
        Environment.SHADOW,
        Environment.RIGHT,
        create_desc=statements.CREATE_SHADOW_DESC,
        drop_desc=statements.DROP_SHADOW_DESC,
    )
    emit_create_strategy_sql(ctx, unit)
    if right.create_strategy in (CreateStrategy.CREATE, CreateStrategy.REPLACE):
        build_migration_sql(
            ctx, db, unit, Environment.LEFT, Environment.SHADOW, Environment.RIGHT
        )
    return True
