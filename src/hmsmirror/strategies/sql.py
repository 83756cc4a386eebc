"""SQL strategy: copy data through a shadow table that reads the source files."""

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
)
from hmsmirror.strategies.decisions import decide_sql_create, resolve_sql
from hmsmirror.strategies.facts import TableFacts

logger = logging.getLogger(__name__)


def right_copy_spec(ctx: StrategyContext, facts: TableFacts) -> CopySpec:
    """Target table of a data copy, located under the target namespace."""
    spec = CopySpec(
        Environment.LEFT,
        Environment.RIGHT,
        replace_location=True,
        take_ownership=ctx.takes_ownership(facts.managed),
    )
    if facts.managed and ctx.config.convert_managed:
        spec.upgrade = True
    else:
        spec.make_external = True
    if ctx.config.reset_to_default_location:
        spec.replace_location = False
        spec.strip_location = True
    return spec


def sql(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    """
    Build a shadow table over the source data and copy it with SQL.

    ACID tables and runs with intermediate or common storage are handed
    to the ACID, INTERMEDIATE or in-place downgrade handlers.
    """
    config = ctx.config
    facts = TableFacts.from_unit(unit)
    resolution = resolve_sql(facts, config)
    if resolution.strategy != DataStrategy.SQL:
        assert resolution.strategy is not None
        if resolution.strategy == DataStrategy.ACID:
            unit.strategy = DataStrategy.ACID
        return ctx.delegate(db, unit, resolution.strategy)
    if not facts.native:
        unit.add_error(
            Environment.LEFT, MessageCode.NON_NATIVE_NOT_SUPPORTED.format(DataStrategy.SQL.value)
        )
        return False

    decision = decide_sql_create(
        facts, sync=config.sync, create_if_not_exists=ctx.run_context.right.create_if_not_exists
    )
    if not apply_create_decision(unit, decision):
        return False

    right = unit.env(Environment.RIGHT)
    if not facts.left_exists:
        right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
        emit_create_strategy_sql(ctx, unit)
        return True

    shadow_spec = CopySpec(
        Environment.LEFT,
        Environment.SHADOW,
        upgrade=config.convert_managed,
        make_external=True,
        take_ownership=False,
        table_name_prefix=config.transfer.shadow_prefix,
    )
    if not build_table_schema(ctx, db, unit, shadow_spec):
        return False
    if not build_table_schema(ctx, db, unit, right_copy_spec(ctx, facts)):
        return False

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
