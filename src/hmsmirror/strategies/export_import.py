"""EXPORT_IMPORT strategy: Hive EXPORT on the source, IMPORT on the target."""

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
    TranslationType,
)
from hmsmirror.strategies import statements
from hmsmirror.strategies.base import (
    StrategyContext,
    apply_create_decision,
    build_table_schema,
    emit_create_strategy_sql,
    export_location,
    result_table_type,
)
from hmsmirror.strategies.decisions import decide_export_import_create, resolve_export_import
from hmsmirror.strategies.facts import TableFacts
from hmsmirror.strategies.sql import right_copy_spec

logger = logging.getLogger(__name__)


def export_import(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    """
    EXPORT the table to a working directory and IMPORT it on the target.

    The IMPORT carries an explicit LOCATION when external locations are
    forced or locations are translated relatively. With ALIGNED
    translations the translated location must equal the default location
    of the target database.
    """
    config = ctx.config
    facts = TableFacts.from_unit(unit)
    resolution = resolve_export_import(facts, config, ctx.run_context)
    if resolution.error:
        unit.add_error(Environment.LEFT, resolution.error)
        return False
    if resolution.strategy != DataStrategy.EXPORT_IMPORT:
        assert resolution.strategy is not None
        return ctx.delegate(db, unit, resolution.strategy)

    decision = decide_export_import_create(facts, sync=config.sync)
    if not apply_create_decision(unit, decision):
        return False

    right = unit.env(Environment.RIGHT)
    left = unit.env(Environment.LEFT)
    if not facts.left_exists:
        right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
        emit_create_strategy_sql(ctx, unit)
        return True

    limit = config.hybrid.export_import_partition_limit
    if facts.partitioned and limit > 0 and facts.partition_count > limit:
        unit.add_error(
            Environment.LEFT,
            MessageCode.EXPORT_IMPORT_PARTITION_LIMIT.format(facts.partition_count, limit),
        )
        return False

    if facts.acid:
        spec = CopySpec(Environment.LEFT, Environment.RIGHT, strip_location=True)
    else:
        spec = right_copy_spec(ctx, facts)
    if not build_table_schema(ctx, db, unit, spec):
        return False

    location = export_location(ctx, db, unit)
    left.add_sql(statements.USE_DESC, statements.use(db.name))
    left.add_sql(statements.EXPORT_DESC, statements.export_table(unit.name, location))

    right.add_sql(statements.USE_DESC, statements.use(db.resolved_name))
    if right.create_strategy == CreateStrategy.REPLACE:
        right.add_sql(statements.DROP_DESC, statements.drop_table(right.name or unit.name))

    translated = ddl.get_location(right.definition)
    import_location = None
    if translated and not facts.acid:
        translation_type = config.transfer.storage_migration.translation_type
        if config.force_external_location or translation_type == TranslationType.RELATIVE:
            import_location = translated
        else:
            table_type = result_table_type(left.definition, spec)
            default = ctx.translator.default_location(db, unit.name, table_type)
            if default is not None and default != translated:
                unit.add_error(
                    Environment.RIGHT,
                    MessageCode.ALIGNED_LOCATION_MISMATCH.format(translated, default),
                )
                return False

    right.add_sql(
        statements.IMPORT_DESC,
        statements.import_table(
            right.name or unit.name,
            location,
            external=ddl.is_external(right.definition),
            location=import_location,
        ),
    )
    owner = left.owner
    if owner and config.ownership_transfer.table and not ctx.run_context.right.legacy_hive:
        right.add_sql(statements.OWNER_DESC, statements.set_owner(right.name or unit.name, owner))
    return True
