"""
Pure decision functions of the strategy cascade.

Every function here reads a TableFacts record and the configuration and
returns a value; none of them touch a MigrationUnit. The handlers apply
the results.
"""

from __future__ import annotations

from dataclasses import dataclass

from hmsmirror.config import RunConfig, RunContext
from hmsmirror.messages import MessageCode
from hmsmirror.models import CreateStrategy, DataStrategy
from hmsmirror.strategies.facts import TableFacts


@dataclass(frozen=True)
class Resolution:
    """
    Strategy selected for a table.

    Attributes:
        strategy: Handler to run next, None when the table is not migrated.
        issue: Advisory message to record on the LEFT environment.
        error: Fatal message to record on the LEFT environment.
    """

    strategy: DataStrategy | None
    issue: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class CreateDecision:
    """
    Create strategy of a target table.

    Attributes:
        create_strategy: DDL to emit for the target table.
        proceed: False when the handler must stop after recording the decision.
        issue: Advisory message for the target environment.
        error: Fatal message for the target environment.
    """

    create_strategy: CreateStrategy
    proceed: bool = True
    issue: str | None = None
    error: str | None = None


def acid_in_place(facts: TableFacts, config: RunConfig) -> bool:
    """An ACID table is downgraded on the source instead of being migrated."""
    acid = config.migrate_acid
    return facts.acid and acid.enabled and acid.downgrade and acid.in_place


def check_eligibility(facts: TableFacts, config: RunConfig) -> str | None:
    """Reason a table is skipped by the ACID settings, None when eligible."""
    if facts.view:
        return None
    if facts.acid and not config.migrate_acid.enabled:
        return MessageCode.ACID_NOT_ON.format()
    if not facts.acid and config.migrate_acid.only:
        return MessageCode.ACID_ONLY_SKIPPED.format()
    return None


def resolve_hybrid(facts: TableFacts, config: RunConfig, context: RunContext) -> Resolution:
    """
    HYBRID cascade.

    ACID tables crossing a Hive generation go to ACID handling (or are not
    migrated when ACID migration is off). Partitioned tables above the
    EXPORT_IMPORT partition limit go to SQL, which stages them through
    INTERMEDIATE when intermediate or common storage is configured.
    Everything else uses EXPORT_IMPORT.
    """
    if facts.acid and context.legacy_migration:
        if not config.migrate_acid.enabled:
            return Resolution(None, issue=MessageCode.ACID_NOT_ON.format())
        return Resolution(DataStrategy.ACID)

    limit = config.hybrid.export_import_partition_limit
    if facts.partitioned and limit > 0 and facts.partition_count > limit:
        issue = MessageCode.HYBRID_EXPORT_IMPORT_LIMIT.format(facts.partition_count, limit)
        return Resolution(DataStrategy.SQL, issue=issue)
    return Resolution(DataStrategy.EXPORT_IMPORT)


def resolve_acid_downgrade(
    facts: TableFacts, config: RunConfig, context: RunContext
) -> Resolution:
    """
    In-place ACID downgrade cascade.

    Legacy Hive always uses the SQL downgrade. Otherwise EXPORT_IMPORT is
    used for unpartitioned tables and for partition counts below its limit
    (a limit of zero or less means no limit). Past that limit SQL is used,
    on a best effort basis when its own limit is exceeded as well; strict
    mode refuses that case.
    """
    if context.left.legacy_hive:
        return Resolution(DataStrategy.SQL_ACID_DOWNGRADE_INPLACE)
    if not facts.partitioned:
        return Resolution(DataStrategy.EXPORT_IMPORT_ACID_DOWNGRADE_INPLACE)

    ei_limit = config.hybrid.export_import_partition_limit
    sql_limit = config.hybrid.sql_partition_limit
    if ei_limit <= 0 or facts.partition_count < ei_limit:
        return Resolution(DataStrategy.EXPORT_IMPORT_ACID_DOWNGRADE_INPLACE)
    if sql_limit > 0 and facts.partition_count > sql_limit:
        message = MessageCode.ACID_DOWNGRADE_SQL_LIMIT.format(
            facts.partition_count, ei_limit, sql_limit
        )
        if config.strict_mode:
            return Resolution(None, error=message)
        return Resolution(DataStrategy.SQL_ACID_DOWNGRADE_INPLACE, issue=message)
    return Resolution(DataStrategy.SQL_ACID_DOWNGRADE_INPLACE)


def resolve_sql(facts: TableFacts, config: RunConfig) -> Resolution:
    """SQL hands ACID and storage-staged tables to more specific handlers."""
    if acid_in_place(facts, config):
        return Resolution(DataStrategy.SQL_ACID_DOWNGRADE_INPLACE)
    if facts.acid and config.migrate_acid.enabled:
        return Resolution(DataStrategy.ACID)
    if config.storage_options_present:
        return Resolution(DataStrategy.INTERMEDIATE)
    return Resolution(DataStrategy.SQL)


def resolve_export_import(
    facts: TableFacts, config: RunConfig, context: RunContext
) -> Resolution:
    """EXPORT_IMPORT eligibility and its in-place ACID variant."""
    if acid_in_place(facts, config):
        return Resolution(DataStrategy.EXPORT_IMPORT_ACID_DOWNGRADE_INPLACE)
    if facts.acid and context.legacy_migration:
        return Resolution(None, error=MessageCode.EXPORT_IMPORT_ACID_LEGACY.format())
    if not facts.native:
        message = MessageCode.NON_NATIVE_NOT_SUPPORTED.format(DataStrategy.EXPORT_IMPORT.value)
        return Resolution(None, error=message)
    return Resolution(DataStrategy.EXPORT_IMPORT)


def _right_only(sync: bool) -> CreateDecision:
    if sync:
        return CreateDecision(
            CreateStrategy.DROP, issue=MessageCode.SCHEMA_EXISTS_SYNC_DROP.format()
        )
    return CreateDecision(
        CreateStrategy.LEAVE, issue=MessageCode.SCHEMA_EXISTS_TARGET_MISMATCH.format()
    )


def _no_action() -> CreateDecision:
    return CreateDecision(
        CreateStrategy.NOTHING,
        proceed=False,
        issue=MessageCode.SCHEMA_EXISTS_NO_ACTION.format(),
    )


def decide_sql_create(
    facts: TableFacts, *, sync: bool, create_if_not_exists: bool
) -> CreateDecision:
    """
    Create strategy of a SQL-copied table.

    An existing target is only touched with sync and create-if-not-exists
    both set; otherwise nothing is done.
    """
    if facts.right_exists:
        if not facts.left_exists:
            return _right_only(sync)
        if sync and create_if_not_exists:
            return CreateDecision(
                CreateStrategy.CREATE,
                issue=MessageCode.SQL_SYNC_WITH_CREATE_IF_NOT_EXISTS.format(),
            )
        return _no_action()
    return CreateDecision(CreateStrategy.CREATE)


def decide_intermediate_create(
    facts: TableFacts, *, sync: bool, create_if_not_exists: bool
) -> CreateDecision:
    """Create strategy of a table staged through intermediate storage."""
    if facts.right_exists:
        if not facts.left_exists:
            return _right_only(sync)
        if not facts.acid and sync and create_if_not_exists:
            return CreateDecision(
                CreateStrategy.CREATE,
                issue=MessageCode.SQL_SYNC_WITH_CREATE_IF_NOT_EXISTS.format(),
            )
        if facts.acid and sync:
            return CreateDecision(
                CreateStrategy.REPLACE, issue=MessageCode.SCHEMA_EXISTS_SYNC_ACID.format()
            )
        return _no_action()
    return CreateDecision(CreateStrategy.CREATE)


def decide_export_import_create(facts: TableFacts, *, sync: bool) -> CreateDecision:
    """IMPORT never overwrites an existing table unless sync replaces it."""
    if facts.right_exists:
        if not facts.left_exists:
            return _right_only(sync)
        if sync and not facts.right_external_purge:
            return CreateDecision(
                CreateStrategy.REPLACE, issue=MessageCode.SCHEMA_EXISTS_SYNC_REPLACE.format()
            )
        return CreateDecision(
            CreateStrategy.LEAVE,
            proceed=False,
            issue=MessageCode.SCHEMA_EXISTS_NO_ACTION.format(),
        )
    return CreateDecision(CreateStrategy.CREATE)


def decide_schema_create(
    facts: TableFacts, schemas_match: bool, *, sync: bool
) -> CreateDecision:
    """
    Create strategy of a schema-only or linked table.

    Matching schemas are left alone. A differing schema is replaced with
    sync, unless the target purges its data on drop.
    """
    if facts.right_exists:
        if not facts.left_exists:
            return _right_only(sync)
        if schemas_match:
            return CreateDecision(
                CreateStrategy.LEAVE, issue=MessageCode.SCHEMA_EXISTS_SYNC_MATCH.format()
            )
        if not sync:
            return _no_action()
        if facts.right_external_purge:
            return CreateDecision(
                CreateStrategy.NOTHING,
                proceed=False,
                error=MessageCode.SCHEMA_EXISTS_SYNC_PURGE.format(),
            )
        return CreateDecision(
            CreateStrategy.REPLACE, issue=MessageCode.SCHEMA_EXISTS_SYNC_REPLACE.format()
        )
    return CreateDecision(CreateStrategy.CREATE)
