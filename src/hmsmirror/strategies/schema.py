"""Handlers that migrate definitions only: SCHEMA_ONLY, LINKED, CONVERT_LINKED, DUMP."""

from __future__ import annotations

import logging

from hmsmirror import ddl
from hmsmirror.location import LocationTranslator
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
    build_table_schema,
    emit_create_strategy_sql,
)
from hmsmirror.strategies.decisions import decide_schema_create
from hmsmirror.strategies.facts import TableFacts

logger = logging.getLogger(__name__)


def _schemas_match(unit: MigrationUnit) -> bool:
    right = unit.env(Environment.RIGHT)
    if not right.exists or not right.definition:
        return False
    return ddl.schemas_equal(unit.env(Environment.LEFT).definition, right.definition)


def _emit_partitions(unit: MigrationUnit, explicit_locations: bool) -> None:
    right = unit.env(Environment.RIGHT)
    if not right.partitioned or right.create_strategy not in (
        CreateStrategy.CREATE,
        CreateStrategy.REPLACE,
    ):
        return
    name = right.name or unit.name
    if explicit_locations and right.partitions:
        partitions = LocationTranslator.build_partition_add_statement(right)
        right.add_sql(statements.ADD_PARTITIONS_DESC, statements.add_partitions(name, partitions))
    else:
        right.add_sql(statements.REPAIR_DESC, statements.repair_table(name))


def view(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    """Views are recreated as they are, without location handling."""
    facts = TableFacts.from_unit(unit)
    decision = decide_schema_create(facts, _schemas_match(unit), sync=ctx.config.sync)
    if not apply_create_decision(unit, decision):
        return False
    right = unit.env(Environment.RIGHT)
    if right.create_strategy in (CreateStrategy.CREATE, CreateStrategy.REPLACE):
        build_table_schema(ctx, db, unit, CopySpec(Environment.LEFT, Environment.RIGHT))
    right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
    emit_create_strategy_sql(ctx, unit)
    return True


def schema_only(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    """
    Recreate the table definition on the target without moving data.

    The location is translated for the target; ACID tables are downgraded
    to external tables when configured, otherwise they keep the default
    managed location of the target.
    """
    config = ctx.config
    facts = TableFacts.from_unit(unit)
    if facts.view:
        return view(ctx, db, unit)

    spec = CopySpec(
        Environment.LEFT,
        Environment.RIGHT,
        upgrade=config.convert_managed,
        take_ownership=ctx.takes_ownership(facts.managed),
        replace_location=True,
    )
    if facts.acid:
        if config.migrate_acid.downgrade:
            spec.make_external = True
            spec.make_non_transactional = True
            spec.take_ownership = ctx.takes_ownership(True)
            spec.bucket_threshold = config.migrate_acid.artificial_bucket_threshold
        else:
            spec.replace_location = False
            spec.strip_location = True
            unit.add_issue(Environment.RIGHT, MessageCode.ACID_SCHEMA_ONLY.format())
    if config.reset_to_default_location and spec.replace_location:
        spec.replace_location = False
        spec.strip_location = True

    decision = decide_schema_create(facts, _schemas_match(unit), sync=config.sync)
    if not apply_create_decision(unit, decision):
        return False

    right = unit.env(Environment.RIGHT)
    if right.create_strategy in (CreateStrategy.CREATE, CreateStrategy.REPLACE):
        if not build_table_schema(ctx, db, unit, spec):
            return False
        if spec.replace_location and not ctx.translator.translate_partition_locations(db, unit):
            return False

    right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
    emit_create_strategy_sql(ctx, unit)
    _emit_partitions(unit, explicit_locations=spec.replace_location)
    return True


def linked(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    """
    Create a target table that reads the source data in place.

    The target never owns the data and keeps the source location.
    """
    config = ctx.config
    facts = TableFacts.from_unit(unit)
    if facts.view:
        return view(ctx, db, unit)
    if facts.acid:
        unit.add_error(Environment.LEFT, MessageCode.ACID_NOT_LINKABLE.format())
        return False
    if not facts.native:
        unit.add_error(
            Environment.LEFT,
            MessageCode.NON_NATIVE_NOT_SUPPORTED.format(DataStrategy.LINKED.value),
        )
        return False

    spec = CopySpec(
        Environment.LEFT,
        Environment.RIGHT,
        upgrade=config.convert_managed,
        make_external=True,
        take_ownership=False,
    )
    decision = decide_schema_create(facts, _schemas_match(unit), sync=config.sync)
    if not apply_create_decision(unit, decision):
        return False

    right = unit.env(Environment.RIGHT)
    if right.create_strategy in (CreateStrategy.CREATE, CreateStrategy.REPLACE):
        build_table_schema(ctx, db, unit, spec)

    right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
    emit_create_strategy_sql(ctx, unit)
    _emit_partitions(unit, explicit_locations=True)
    return True


def convert_linked(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    """
    Re-point a previously linked target table at the target namespace.

    Missing target tables are created with SCHEMA_ONLY. Partitioned tables
    are dropped (without purging the source data) and recreated with
    SCHEMA_ONLY, since every partition location would change.
    """
    facts = TableFacts.from_unit(unit)
    right = unit.env(Environment.RIGHT)
    name = right.name or unit.name

    if not facts.right_exists:
        right.add_issue(MessageCode.CONVERT_LINKED_MISSING.format())
        unit.strategy = DataStrategy.SCHEMA_ONLY
        return ctx.delegate(db, unit, DataStrategy.SCHEMA_ONLY)
    if facts.acid:
        unit.add_issue(
            Environment.LEFT,
            MessageCode.ACID_NOT_ELIGIBLE.format(DataStrategy.CONVERT_LINKED.value),
        )
        return False

    if facts.partitioned:
        right.add_issue(MessageCode.CONVERT_LINKED_PARTITIONED.format())
        right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
        right.add_sql(
            statements.UNSET_PROPERTY_DESC,
            statements.unset_table_property(name, ddl.EXTERNAL_TABLE_PURGE),
        )
        right.add_sql(statements.DROP_DESC, statements.drop_table(name))
        right.exists = False
        unit.strategy = DataStrategy.SCHEMA_ONLY
        return ctx.delegate(db, unit, DataStrategy.SCHEMA_ONLY)

    original = ddl.get_location(unit.env(Environment.LEFT).definition)
    if original is None:
        unit.add_error(Environment.LEFT, MessageCode.LOCATION_NOT_FOUND.format(unit.name))
        return False
    location = ctx.translator.translate_table_location(
        db, unit, original, ctx.config.consolidation_level_base
    )
    right.create_strategy = CreateStrategy.LEAVE
    right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
    right.add_sql(statements.SET_LOCATION_DESC, statements.set_table_location(name, location))
    if facts.legacy_managed or (facts.managed and ctx.config.convert_managed):
        right.add_sql(
            statements.SET_PROPERTY_DESC,
            statements.set_table_property(name, ddl.EXTERNAL_TABLE_PURGE, "true"),
        )
    return True


def dump(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    """
    Re-emit the source definitions as a script for the source cluster.

    The plan is recorded on LEFT and never executed.
    """
    facts = TableFacts.from_unit(unit)
    spec = CopySpec(Environment.LEFT, Environment.RIGHT)
    if facts.acid and not ctx.run_context.left.legacy_hive:
        spec.strip_location = True

    build_table_schema(ctx, db, unit, spec)
    right = unit.env(Environment.RIGHT)
    right.create_strategy = CreateStrategy.CREATE
    left = unit.env(Environment.LEFT)
    left.add_sql(statements.USE_DESC, statements.use(db.name))
    emit_create_strategy_sql(ctx, unit, Environment.RIGHT, Environment.LEFT)
    if facts.partitioned:
        left.add_sql(statements.REPAIR_DESC, statements.repair_table(unit.name))
    return True
