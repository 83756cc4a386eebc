"""
Data models for the metadata migration engine.

Models in this module:

Enums:
    - Environment: Catalog environments a table is described in
    - PhaseState: Lifecycle of one table's migration
    - CreateStrategy: Which DDL is emitted for the target table
    - DataStrategy: Strategy handlers (top-level and delegation targets)
    - TableType: Managed or external storage ownership
    - TranslationLevel: Which rule produced a location translation
    - TranslationType: How locations without a GLM match are placed

Core Models:
    - SqlStatement: One (description, statement) pair of a plan
    - EnvironmentTable: Per-environment facts and plan for a table
    - MigrationUnit: One table being migrated
    - DatabaseUnit: One database and its tables
    - CopySpec: Parameters of a single schema-rewrite call
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hmsmirror.exceptions import InvalidPhaseTransitionError


class Environment(Enum):
    """
    Environments a table can be described in.

    LEFT and RIGHT are the source and target catalogs. SHADOW and TRANSFER
    are scratch tables used to stage SQL based data movement.
    """

    LEFT = "LEFT"
    RIGHT = "RIGHT"
    SHADOW = "SHADOW"
    TRANSFER = "TRANSFER"


class PhaseState(Enum):
    """
    Table migration lifecycle phases.

    State machine transitions:
        INIT -> STARTED -> CALCULATED_SQL -> EXECUTED
            |
        Any phase ------> ERROR (terminal)

    Phases only move forward. Re-entering the current phase is a no-op.
    """

    INIT = "INIT"
    """Table discovered, nothing decided yet."""

    STARTED = "STARTED"
    """A worker picked the table up."""

    CALCULATED_SQL = "CALCULATED_SQL"
    """Definitions and the SQL plan have been built."""

    EXECUTED = "EXECUTED"
    """The SQL plan was run against the endpoints."""

    ERROR = "ERROR"
    """The table failed; nothing further is done for it."""

    @property
    def is_terminal(self) -> bool:
        """ERROR is the only phase that cannot be left."""
        return self == PhaseState.ERROR

    def can_transition_to(self, target: PhaseState) -> bool:
        """
        Check whether a transition to the target phase is allowed.

        Args:
            target: The phase to transition to.

        Returns:
            True if the transition is allowed.
        """
        if self.is_terminal:
            return False
        if target == PhaseState.ERROR:
            return True
        return _PHASE_ORDER[target] >= _PHASE_ORDER[self]


_PHASE_ORDER = {
    PhaseState.INIT: 0,
    PhaseState.STARTED: 1,
    PhaseState.CALCULATED_SQL: 2,
    PhaseState.EXECUTED: 3,
}


class CreateStrategy(Enum):
    """Which DDL is emitted for a target table."""

    NOTHING = "NOTHING"
    LEAVE = "LEAVE"
    DROP = "DROP"
    REPLACE = "REPLACE"
    CREATE = "CREATE"


class DataStrategy(Enum):
    """
    Strategy handlers.

    Only some members may be configured as the run's strategy; the rest are
    reached through delegation from another handler.
    """

    SCHEMA_ONLY = "SCHEMA_ONLY"
    LINKED = "LINKED"
    CONVERT_LINKED = "CONVERT_LINKED"
    SQL = "SQL"
    EXPORT_IMPORT = "EXPORT_IMPORT"
    HYBRID = "HYBRID"
    STORAGE_MIGRATION = "STORAGE_MIGRATION"
    DUMP = "DUMP"
    INTERMEDIATE = "INTERMEDIATE"
    ACID = "ACID"
    EXPORT_IMPORT_ACID_DOWNGRADE_INPLACE = "EXPORT_IMPORT_ACID_DOWNGRADE_INPLACE"
    SQL_ACID_DOWNGRADE_INPLACE = "SQL_ACID_DOWNGRADE_INPLACE"
    HYBRID_ACID_DOWNGRADE_INPLACE = "HYBRID_ACID_DOWNGRADE_INPLACE"

    @property
    def is_top_level(self) -> bool:
        """Check if the strategy may be configured for a run."""
        return self in (
            DataStrategy.SCHEMA_ONLY,
            DataStrategy.LINKED,
            DataStrategy.CONVERT_LINKED,
            DataStrategy.SQL,
            DataStrategy.EXPORT_IMPORT,
            DataStrategy.HYBRID,
            DataStrategy.STORAGE_MIGRATION,
            DataStrategy.DUMP,
        )


class TableType(Enum):
    """Storage ownership of a table."""

    MANAGED_TABLE = "MANAGED_TABLE"
    EXTERNAL_TABLE = "EXTERNAL_TABLE"

    @classmethod
    def parse(cls, value: TableType | str | None) -> TableType | None:
        """Convert a metastore table type string, returning None when unknown."""
        if isinstance(value, TableType):
            return value
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class TranslationLevel(Enum):
    """Which rule produced a location translation."""

    GLM = "GLM"
    """An explicit, user supplied global location map entry."""

    WAREHOUSE_PLAN = "WAREHOUSE_PLAN"
    """An entry derived from a database's warehouse plan."""

    RELATIVE = "RELATIVE"
    """The path kept its shape and only the namespace was substituted."""


class TranslationType(Enum):
    """How locations with no GLM match are placed on the target."""

    RELATIVE = "RELATIVE"
    ALIGNED = "ALIGNED"


@dataclass(frozen=True)
class SqlStatement:
    """One step of a SQL plan."""

    description: str
    action: str

    def to_dict(self) -> dict[str, str]:
        return {"description": self.description, "action": self.action}


@dataclass
class EnvironmentTable:
    """
    Facts and plan of a table in one environment.

    Attributes:
        name: Table name in this environment (prefixed for scratch tables).
        exists: Whether the table exists in this environment.
        definition: CREATE statement, one line per element.
        partitioned: Whether the table is partitioned.
        partitions: Partition spec -> storage location.
        properties: Table properties.
        owner: Table owner when known.
        sql: Ordered plan for this environment.
        cleanup_sql: Statements to run after the plan.
        create_strategy: DDL decision for this environment.
        issues: Advisory messages.
        errors: Messages that failed the table.
        known: False when the endpoint could not be queried.
    """

    name: str | None = None
    exists: bool = False
    definition: list[str] = field(default_factory=list)
    partitioned: bool = False
    partitions: dict[str, str] = field(default_factory=dict)
    properties: dict[str, str] = field(default_factory=dict)
    owner: str | None = None
    sql: list[SqlStatement] = field(default_factory=list)
    cleanup_sql: list[SqlStatement] = field(default_factory=list)
    create_strategy: CreateStrategy = CreateStrategy.NOTHING
    issues: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    known: bool = True

    def add_sql(self, description: str, action: str) -> None:
        self.sql.append(SqlStatement(description, action))

    def add_cleanup_sql(self, description: str, action: str) -> None:
        self.cleanup_sql.append(SqlStatement(description, action))

    def add_issue(self, message: str) -> None:
        self.issues.append(message)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "exists": self.exists,
            "definition": list(self.definition),
            "partitioned": self.partitioned,
            "partitions": dict(self.partitions),
            "owner": self.owner,
            "create_strategy": self.create_strategy.value,
            "sql": [s.to_dict() for s in self.sql],
            "cleanup_sql": [s.to_dict() for s in self.cleanup_sql],
            "issues": list(self.issues),
            "errors": list(self.errors),
        }


@dataclass
class MigrationUnit:
    """
    One table being migrated.

    A unit is owned by the single worker processing it, so none of its
    state is guarded.

    Attributes:
        database: Source database name.
        name: Table name.
        strategy: Currently assigned strategy. Handlers may reassign it.
        phase_state: Lifecycle phase.
        environments: Per-environment facts and plans.
        re_mapped: True once a GLM entry rewrote one of its locations.
        strategy_trail: Every handler invoked for the table, in order.
    """

    database: str
    name: str
    strategy: DataStrategy | None = None
    phase_state: PhaseState = PhaseState.INIT
    environments: dict[Environment, EnvironmentTable] = field(default_factory=dict)
    re_mapped: bool = False
    strategy_trail: list[DataStrategy] = field(default_factory=list)

    def env(self, environment: Environment) -> EnvironmentTable:
        """Get the environment record, creating an empty one on first use."""
        table = self.environments.get(environment)
        if table is None:
            table = EnvironmentTable()
            self.environments[environment] = table
        return table

    def add_issue(self, environment: Environment, message: str) -> None:
        self.env(environment).add_issue(message)

    def add_error(self, environment: Environment, message: str) -> None:
        self.env(environment).add_error(message)

    @property
    def has_errors(self) -> bool:
        return any(t.errors for t in self.environments.values())

    @property
    def partition_count(self) -> int:
        """Number of partitions observed on the source."""
        return len(self.env(Environment.LEFT).partitions)

    def transition_to(self, target: PhaseState) -> None:
        """
        Move the unit to a new phase.

        Raises:
            InvalidPhaseTransitionError: If the state machine forbids it.
        """
        if target == self.phase_state:
            return
        if not self.phase_state.can_transition_to(target):
            raise InvalidPhaseTransitionError(
                self.phase_state.value,
                target.value,
                database=self.database,
                table=self.name,
            )
        self.phase_state = target

    def to_dict(self) -> dict[str, Any]:
        return {
            "database": self.database,
            "name": self.name,
            "strategy": self.strategy.value if self.strategy else None,
            "phase_state": self.phase_state.value,
            "re_mapped": self.re_mapped,
            "strategy_trail": [s.value for s in self.strategy_trail],
            "environments": {
                env.value: table.to_dict() for env, table in self.environments.items()
            },
        }


@dataclass
class DatabaseUnit:
    """
    One database and the tables migrated with it.

    Attributes:
        name: Source database name.
        resolved_name: Database name on the target after prefix/rename.
        properties: Per-environment database properties (location, owner, ...).
        sql: Per-environment database DDL, emitted before any table DDL.
        issues: Per-environment advisory messages.
        tables: Tables keyed by name.
    """

    name: str
    resolved_name: str
    properties: dict[Environment, dict[str, str]] = field(default_factory=dict)
    sql: dict[Environment, list[SqlStatement]] = field(default_factory=dict)
    issues: dict[Environment, list[str]] = field(default_factory=dict)
    tables: dict[str, MigrationUnit] = field(default_factory=dict)

    @property
    def location_directory(self) -> str:
        """Directory name of the resolved database under a warehouse root."""
        return f"{self.resolved_name}.db"

    def get_property(self, environment: Environment, key: str) -> str | None:
        return self.properties.get(environment, {}).get(key)

    def add_sql(self, environment: Environment, description: str, action: str) -> None:
        self.sql.setdefault(environment, []).append(SqlStatement(description, action))

    def add_issue(self, environment: Environment, message: str) -> None:
        self.issues.setdefault(environment, []).append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "resolved_name": self.resolved_name,
            "properties": {env.value: dict(p) for env, p in self.properties.items()},
            "sql": {env.value: [s.to_dict() for s in stmts] for env, stmts in self.sql.items()},
            "issues": {env.value: list(msgs) for env, msgs in self.issues.items()},
            "tables": sorted(self.tables),
        }


@dataclass
class CopySpec:
    """
    Parameters of one schema-rewrite call.

    Built by a strategy handler, handed to the schema rewriter and then
    discarded.

    Attributes:
        source: Environment whose definition is rewritten.
        target: Environment receiving the new definition.
        upgrade: Convert a legacy managed definition to an external one.
        take_ownership: New table owns (and may purge) its data.
        make_external: Force an external definition.
        make_non_transactional: Drop transactional properties.
        replace_location: Put `location` in the LOCATION clause.
        strip_location: Remove the LOCATION clause.
        table_name_prefix: Prefix for the new table name.
        location: Target location, filled in before the rewrite.
        strip_database_qualifier: Remove `db.` from the CREATE line.
        bucket_threshold: Remove CLUSTERED BY when the bucket count is at or
            below this value.
    """

    source: Environment
    target: Environment
    upgrade: bool = False
    take_ownership: bool = False
    make_external: bool = False
    make_non_transactional: bool = False
    replace_location: bool = False
    strip_location: bool = False
    table_name_prefix: str | None = None
    location: str | None = None
    strip_database_qualifier: bool = True
    bucket_threshold: int | None = None
