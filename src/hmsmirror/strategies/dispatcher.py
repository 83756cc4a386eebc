"""
Strategy dispatcher.

Resolves one table with its configured strategy, following delegations
between handlers, and turns the result into a phase transition. Handler
failures never leave this module: they become table errors.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from hmsmirror.config import RunConfig, build_run_context
from hmsmirror.exceptions import TableMigrationError
from hmsmirror.location import LocationTranslator
from hmsmirror.messages import MessageCode
from hmsmirror.models import (
    DatabaseUnit,
    DataStrategy,
    Environment,
    MigrationUnit,
    PhaseState,
)
from hmsmirror.observability import (
    ATTR_DATABASE,
    ATTR_PHASE_STATE,
    ATTR_RUN_ID,
    ATTR_STRATEGY,
    ATTR_TABLE,
    Tracer,
    create_tracer,
)
from hmsmirror.rewriter import HiveSchemaRewriter, SchemaRewriter
from hmsmirror.strategies.acid import (
    acid,
    export_import_acid_downgrade_inplace,
    hybrid_acid_downgrade_inplace,
    sql_acid_downgrade_inplace,
)
from hmsmirror.strategies.base import StrategyContext
from hmsmirror.strategies.decisions import check_eligibility
from hmsmirror.strategies.export_import import export_import
from hmsmirror.strategies.facts import TableFacts
from hmsmirror.strategies.hybrid import hybrid
from hmsmirror.strategies.intermediate import intermediate
from hmsmirror.strategies.schema import convert_linked, dump, linked, schema_only
from hmsmirror.strategies.sql import sql
from hmsmirror.strategies.storage_migration import storage_migration

logger = logging.getLogger(__name__)

Handler = Callable[[StrategyContext, DatabaseUnit, MigrationUnit], bool]

_SOURCE_ONLY = (Environment.LEFT,)
_BOTH = (Environment.LEFT, Environment.RIGHT)


@dataclass(frozen=True)
class HandlerSpec:
    """
    Registry entry of a strategy.

    Attributes:
        handler: Function that builds the table's plans.
        execution_order: Environments whose plans run, in order.
        executes: False for plans that are only reported.
    """

    handler: Handler
    execution_order: tuple[Environment, ...] = _BOTH
    executes: bool = True


HANDLERS: dict[DataStrategy, HandlerSpec] = {
    DataStrategy.SCHEMA_ONLY: HandlerSpec(schema_only),
    DataStrategy.LINKED: HandlerSpec(linked),
    DataStrategy.CONVERT_LINKED: HandlerSpec(convert_linked),
    DataStrategy.SQL: HandlerSpec(sql),
    DataStrategy.EXPORT_IMPORT: HandlerSpec(export_import),
    DataStrategy.HYBRID: HandlerSpec(hybrid),
    DataStrategy.STORAGE_MIGRATION: HandlerSpec(storage_migration, _SOURCE_ONLY),
    DataStrategy.DUMP: HandlerSpec(dump, _SOURCE_ONLY, executes=False),
    DataStrategy.INTERMEDIATE: HandlerSpec(intermediate),
    DataStrategy.ACID: HandlerSpec(acid),
    DataStrategy.EXPORT_IMPORT_ACID_DOWNGRADE_INPLACE: HandlerSpec(
        export_import_acid_downgrade_inplace, _SOURCE_ONLY
    ),
    DataStrategy.SQL_ACID_DOWNGRADE_INPLACE: HandlerSpec(
        sql_acid_downgrade_inplace, _SOURCE_ONLY
    ),
    DataStrategy.HYBRID_ACID_DOWNGRADE_INPLACE: HandlerSpec(
        hybrid_acid_downgrade_inplace, _SOURCE_ONLY
    ),
}

# Strategies whose plans are applied to the source cluster.
_SOURCE_TARGETED = (DataStrategy.DUMP, DataStrategy.STORAGE_MIGRATION)

# Strategies that move data; views fall back to SCHEMA_ONLY under them.
_DATA_STRATEGIES = (
    DataStrategy.SQL,
    DataStrategy.EXPORT_IMPORT,
    DataStrategy.HYBRID,
    DataStrategy.INTERMEDIATE,
    DataStrategy.ACID,
    DataStrategy.CONVERT_LINKED,
)


@dataclass
class DispatchOutcome:
    """
    Result of resolving one table.

    Attributes:
        database: Source database name.
        table: Table name.
        strategy: Strategy the dispatch started with.
        trail: Every handler that ran, in order.
        success: The last handler built a plan.
        phase_state: Phase of the table after dispatch.
        error: Exception text when a handler raised.
    """

    database: str
    table: str
    strategy: DataStrategy
    trail: list[DataStrategy] = field(default_factory=list)
    success: bool = False
    phase_state: PhaseState = PhaseState.INIT
    error: str | None = None

    @property
    def resolved_strategy(self) -> DataStrategy:
        """Handler that produced the plan."""
        return self.trail[-1] if self.trail else self.strategy

    @property
    def execution_order(self) -> tuple[Environment, ...]:
        return HANDLERS[self.resolved_strategy].execution_order

    @property
    def executable(self) -> bool:
        """The plan may be run against the endpoints."""
        return (
            self.success
            and self.phase_state == PhaseState.CALCULATED_SQL
            and HANDLERS[self.strategy].executes
            and HANDLERS[self.resolved_strategy].executes
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "database": self.database,
            "table": self.table,
            "strategy": self.strategy.value,
            "trail": [s.value for s in self.trail],
            "success": self.success,
            "phase_state": self.phase_state.value,
            "error": self.error,
        }


class StrategyDispatcher:
    """
    Runs the strategy handlers of a run.

    Example:
        >>> dispatcher = StrategyDispatcher(config, translator, run_id="run-1")
        >>> outcome = dispatcher.resolve(db, unit)
        >>> outcome.phase_state
        <PhaseState.CALCULATED_SQL: 'CALCULATED_SQL'>
    """

    def __init__(
        self,
        config: RunConfig,
        translator: LocationTranslator,
        rewriter: SchemaRewriter | None = None,
        run_id: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            config: Run configuration
            translator: Location translator shared by every table of the run
            rewriter: Schema rewriter (defaults to HiveSchemaRewriter)
            run_id: Run identifier (generated if not provided)
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._config = config
        self._translator = translator
        self._rewriter = rewriter or HiveSchemaRewriter()
        self._run_id = run_id or str(uuid4())
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

    @property
    def run_id(self) -> str:
        return self._run_id

    def _context(self, strategy: DataStrategy) -> StrategyContext:
        target = Environment.LEFT if strategy in _SOURCE_TARGETED else Environment.RIGHT
        ctx = StrategyContext(
            config=self._config,
            run_context=build_run_context(self._config, target),
            translator=self._translator,
            rewriter=self._rewriter,
            run_id=self._run_id,
            delegate=lambda db, table, next_strategy: self._invoke(ctx, db, table, next_strategy),
        )
        return ctx

    def _invoke(
        self,
        ctx: StrategyContext,
        db: DatabaseUnit,
        unit: MigrationUnit,
        strategy: DataStrategy,
    ) -> bool:
        if strategy in unit.strategy_trail:
            trail = " -> ".join(s.value for s in unit.strategy_trail)
            raise TableMigrationError(
                MessageCode.STRATEGY_CYCLE.format(strategy.value, trail),
                database=db.name,
                table=unit.name,
            )
        unit.strategy_trail.append(strategy)
        logger.debug("Running %s for %s.%s", strategy.value, db.name, unit.name)
        return HANDLERS[strategy].handler(ctx, db, unit)

    def _route(self, unit: MigrationUnit, strategy: DataStrategy) -> DataStrategy | None:
        """Apply table eligibility before the handlers; None skips the table."""
        facts = TableFacts.from_unit(unit)
        if not facts.left_exists and not facts.right_exists:
            missing = MessageCode.SOURCE_TABLE_MISSING.format()
            if missing not in unit.env(Environment.LEFT).issues:
                unit.add_issue(Environment.LEFT, missing)
            return None
        if strategy == DataStrategy.DUMP:
            return strategy
        reason = check_eligibility(facts, self._config)
        if reason:
            unit.add_issue(Environment.LEFT, reason)
            return None
        if facts.view and strategy in _DATA_STRATEGIES:
            unit.add_issue(Environment.RIGHT, MessageCode.VIEW_SCHEMA_ONLY.format())
            return DataStrategy.SCHEMA_ONLY
        return strategy

    def resolve(
        self,
        db: DatabaseUnit,
        unit: MigrationUnit,
        strategy: DataStrategy | None = None,
    ) -> DispatchOutcome:
        """
        Build the plans of one table.

        Args:
            db: Database the table belongs to
            unit: Table to resolve
            strategy: Starting strategy (defaults to the table's, then the run's)

        Returns:
            Outcome with the handler trail and the resulting phase
        """
        strategy = strategy or unit.strategy or self._config.data_strategy
        if unit.strategy is None:
            unit.strategy = strategy
        outcome = DispatchOutcome(database=db.name, table=unit.name, strategy=strategy)

        with self._tracer.span(
            "hmsmirror.dispatcher.resolve",
            {
                ATTR_RUN_ID: self._run_id,
                ATTR_DATABASE: db.name,
                ATTR_TABLE: unit.name,
                ATTR_STRATEGY: strategy.value,
            },
        ) as span:
            try:
                unit.transition_to(PhaseState.STARTED)
                routed = self._route(unit, strategy)
                if routed is None:
                    success = False
                else:
                    success = self._invoke(self._context(routed), db, unit, routed)
            except Exception as e:
                failed = unit.strategy_trail[-1] if unit.strategy_trail else strategy
                logger.exception("%s failed for %s.%s", failed.value, db.name, unit.name)
                unit.add_error(
                    Environment.LEFT, MessageCode.HANDLER_FAILED.format(failed.value, e)
                )
                if not unit.phase_state.is_terminal:
                    unit.transition_to(PhaseState.ERROR)
                outcome.error = str(e)
                success = False
            else:
                if not success and unit.has_errors:
                    unit.transition_to(PhaseState.ERROR)
                else:
                    unit.transition_to(PhaseState.CALCULATED_SQL)

            outcome.success = success
            outcome.trail = list(unit.strategy_trail)
            outcome.phase_state = unit.phase_state
            if span is not None:
                span.set_attribute(ATTR_PHASE_STATE, unit.phase_state.value)

        logger.info(
            "Resolved %s.%s with %s (%s)",
            db.name,
            unit.name,
            " -> ".join(s.value for s in outcome.trail) or strategy.value,
            unit.phase_state.value,
        )
        return outcome
