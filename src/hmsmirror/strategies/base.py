"""
Shared building blocks of the strategy handlers.

A handler is a plain function ``(ctx, db, unit) -> bool``. It fills the
definitions and SQL plans of the unit's environments and returns False when
the table should not be migrated. Handlers delegate to other handlers
through ``ctx.delegate``, which is a synchronous call.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from hmsmirror import ddl
from hmsmirror.config import RunConfig, RunContext
from hmsmirror.exceptions import MissingDataPointError
from hmsmirror.location import LocationTranslator
from hmsmirror.messages import MessageCode
from hmsmirror.models import (
    CopySpec,
    CreateStrategy,
    DatabaseUnit,
    DataStrategy,
    Environment,
    MigrationUnit,
    TableType,
)
from hmsmirror.rewriter import SchemaRewriter
from hmsmirror.strategies import statements
from hmsmirror.strategies.decisions import CreateDecision

logger = logging.getLogger(__name__)

Delegate = Callable[[DatabaseUnit, MigrationUnit, DataStrategy], bool]


@dataclass
class StrategyContext:
    """
    Everything a handler needs besides the table itself.

    Attributes:
        config: Run configuration.
        run_context: LEFT/RIGHT endpoint view for this strategy.
        translator: Location translator of the run.
        rewriter: Schema rewriter.
        run_id: Identifier of the run, used in working directories.
        delegate: Invokes another handler on the same table.
    """

    config: RunConfig
    run_context: RunContext
    translator: LocationTranslator
    rewriter: SchemaRewriter
    run_id: str
    delegate: Delegate

    @property
    def target_namespace(self) -> str:
        return self.config.target_namespace or ""

    def shadow_name(self, table: str) -> str:
        return f"{self.config.transfer.shadow_prefix}{table}"

    def transfer_name(self, table: str) -> str:
        return f"{self.config.transfer.transfer_prefix}{table}"

    @staticmethod
    def archive_name(table: str) -> str:
        return f"{table}_archive"

    def takes_ownership(self, managed: bool) -> bool:
        """The new table owns its data only if the source table did."""
        return managed and not self.config.read_only and not self.config.no_purge


def result_table_type(definition: list[str], spec: CopySpec) -> TableType:
    """Table type a definition has after the rewrite described by spec."""
    if ddl.is_external(definition) or spec.make_external:
        return TableType.EXTERNAL_TABLE
    if spec.upgrade and not ddl.is_acid(definition):
        return TableType.EXTERNAL_TABLE
    return TableType.MANAGED_TABLE


def build_table_schema(
    ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit, spec: CopySpec
) -> bool:
    """
    Build the definition of ``spec.target`` from ``spec.source``.

    When the location is replaced and no explicit location was given, the
    source location is translated for the target.

    Returns:
        False if the source definition has no location to translate

    Raises:
        MissingDataPointError: If the source environment has no definition
    """
    source = unit.env(spec.source)
    target = unit.env(spec.target)
    if not source.definition:
        raise MissingDataPointError(
            f"No definition for {unit.name} on {spec.source.value}",
            database=db.name,
            table=unit.name,
        )

    if spec.replace_location and spec.location is None:
        original = ddl.get_location(source.definition)
        if original is None:
            unit.add_error(spec.target, MessageCode.LOCATION_NOT_FOUND.format(unit.name))
            return False
        spec.location = ctx.translator.translate_table_location(
            db,
            unit,
            original,
            ctx.config.consolidation_level_base,
            table_type=result_table_type(source.definition, spec),
        )

    target.definition = ctx.rewriter.rewrite(source.definition, spec)
    target.name = f"{spec.table_name_prefix or ''}{unit.name}"
    if spec.target != spec.source:
        target.partitioned = source.partitioned
        target.partitions = dict(source.partitions)
    logger.debug(
        "Built %s definition of %s.%s from %s",
        spec.target.value,
        db.name,
        unit.name,
        spec.source.value,
    )
    return True


def apply_create_decision(
    unit: MigrationUnit, decision: CreateDecision, environment: Environment = Environment.RIGHT
) -> bool:
    """Record a create decision on a table. Returns ``decision.proceed``."""
    table = unit.env(environment)
    table.create_strategy = decision.create_strategy
    if decision.issue:
        table.add_issue(decision.issue)
    if decision.error:
        table.add_error(decision.error)
    if not decision.proceed and decision.issue:
        table.add_sql(statements.SKIPPED_DESC, statements.comment(decision.issue))
    return decision.proceed


def emit_create_strategy_sql(
    ctx: StrategyContext,
    unit: MigrationUnit,
    table_env: Environment = Environment.RIGHT,
    sql_env: Environment | None = None,
) -> None:
    """
    Append the DDL of a table's create strategy to a plan.

    NOTHING and LEAVE emit nothing, DROP drops, REPLACE drops and creates,
    CREATE creates and, on a non-legacy target, transfers ownership.
    """
    table = unit.env(table_env)
    plan = unit.env(sql_env or table_env)
    name = table.name or unit.name
    view = ddl.is_view(table.definition)
    drop = statements.drop_view(name) if view else statements.drop_table(name)
    create_if_not_exists = ctx.run_context.right.create_if_not_exists

    strategy = table.create_strategy
    if strategy in (CreateStrategy.NOTHING, CreateStrategy.LEAVE):
        return
    if strategy in (CreateStrategy.DROP, CreateStrategy.REPLACE):
        plan.add_sql(statements.DROP_DESC, drop)
    if strategy in (CreateStrategy.REPLACE, CreateStrategy.CREATE):
        plan.add_sql(
            statements.CREATE_DESC, ddl.render_create(table.definition, create_if_not_exists)
        )
    if strategy == CreateStrategy.CREATE and not view:
        owner = unit.env(Environment.LEFT).owner
        if owner and ctx.config.ownership_transfer.table and not ctx.run_context.right.legacy_hive:
            plan.add_sql(statements.OWNER_DESC, statements.set_owner(name, owner))


def emit_working_table(
    unit: MigrationUnit,
    table_env: Environment,
    sql_env: Environment,
    *,
    create_desc: str,
    drop_desc: str,
    repair: bool = True,
) -> None:
    """Drop and recreate a shadow or transfer table, repairing its partitions."""
    table = unit.env(table_env)
    plan = unit.env(sql_env)
    plan.add_sql(drop_desc, statements.drop_table(table.name))
    plan.add_sql(create_desc, ddl.render_create(table.definition))
    if repair and table.partitioned:
        plan.add_sql(statements.REPAIR_DESC, statements.repair_table(table.name))


def build_migration_sql(
    ctx: StrategyContext,
    db: DatabaseUnit,
    unit: MigrationUnit,
    source_env: Environment,
    shadow_env: Environment,
    target_env: Environment,
) -> bool:
    """
    Append the data movement of a table to a plan.

    Rows are read from the shadow table (or the source itself when both
    environments are the same) into the target table. Copies into a
    TRANSFER table run on the LEFT cluster; everything else on RIGHT. The
    shadow table is dropped in cleanup unless working tables are kept.
    """
    source = unit.env(source_env)
    shadow = unit.env(shadow_env)
    target = unit.env(target_env)
    plan_env = Environment.LEFT if target_env == Environment.TRANSFER else Environment.RIGHT
    plan = unit.env(plan_env)

    from_name = shadow.name if shadow_env != source_env else (source.name or unit.name)
    columns = ddl.partition_columns(source.definition) if source.partitioned else []
    if columns:
        plan.add_sql(statements.DYNAMIC_PARTITION_DESC, statements.SET_DYNAMIC_PARTITION)
        plan.add_sql(statements.DYNAMIC_PARTITION_DESC, statements.SET_DYNAMIC_PARTITION_MODE)
    plan.add_sql(
        statements.MOVE_DATA_DESC,
        statements.insert_overwrite(from_name, target.name or unit.name, columns),
    )

    if shadow_env != source_env and not ctx.config.save_working_tables:
        database = db.name if plan_env == Environment.LEFT else db.resolved_name
        plan.add_cleanup_sql(statements.USE_DESC, statements.use(database))
        plan.add_cleanup_sql(statements.DROP_SHADOW_DESC, statements.drop_table(from_name))
    return True


def export_location(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> str:
    """Directory an EXPORT writes to."""
    transfer = ctx.config.transfer
    base = transfer.intermediate_storage or transfer.common_storage
    if base:
        return f"{base}/{transfer.remote_working_directory}/{ctx.run_id}/{db.name}/{unit.name}"
    namespace = ctx.run_context.left.hcfs_namespace or ""
    return f"{namespace}{transfer.export_base_dir_prefix}{db.name}/{unit.name}"


def transfer_location(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> str:
    """Location of the TRANSFER table of an intermediate copy."""
    transfer = ctx.config.transfer
    base = transfer.intermediate_storage or ctx.target_namespace
    return (
        f"{base}/{transfer.remote_working_directory}/{ctx.run_id}/"
        f"{db.name}.db/{unit.name}"
    )
