"""
Run coordinator.

A run goes through these steps:

1. Validate the configuration (run-level faults abort before any work).
2. Scan the LEFT and RIGHT catalogs for every configured database.
3. Feed the observed source locations to the warehouse map builder and
   freeze it.
4. Reconcile warehouse plans into derived GLM entries.
5. Emit database DDL, then resolve every table on a bounded worker pool,
   one database at a time.
6. Optionally execute the plans against the endpoints.

Table state is persisted as snapshots after each phase transition.

Example:
    >>> runner = MigrationRunner(config, {
    ...     Environment.LEFT: left_catalog,
    ...     Environment.RIGHT: right_catalog,
    ... })
    >>> result = await runner.run()
    >>> result.phase_counts[PhaseState.CALCULATED_SQL]
    12
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from hmsmirror import ddl
from hmsmirror.catalog import CatalogEndpoint
from hmsmirror.config import RunConfig, ensure_valid
from hmsmirror.databases import build_database_sql
from hmsmirror.exceptions import CatalogError, CatalogTimeoutError, CatalogUnavailableError
from hmsmirror.location import (
    GlobalLocationMap,
    LocationTranslator,
    ReconciliationReport,
    TranslationAudit,
    Warehouse,
    reconcile_warehouse_plans,
)
from hmsmirror.messages import MessageCode
from hmsmirror.models import (
    DatabaseUnit,
    DataStrategy,
    Environment,
    MigrationUnit,
    PhaseState,
    SqlStatement,
)
from hmsmirror.observability import (
    ATTR_DATA_STRATEGY,
    ATTR_DATABASE,
    ATTR_GLM_SIZE,
    ATTR_RUN_ID,
    ATTR_STATEMENT_COUNT,
    Tracer,
    create_tracer,
)
from hmsmirror.repositories import (
    DatabaseSnapshot,
    InMemoryRunSnapshotRepository,
    RunSnapshotRepository,
    TableSnapshot,
)
from hmsmirror.rewriter import SchemaRewriter
from hmsmirror.strategies import DispatchOutcome, StrategyDispatcher

logger = logging.getLogger(__name__)

# Strategies that never look at the target cluster.
_SOURCE_ONLY_STRATEGIES = (DataStrategy.DUMP, DataStrategy.STORAGE_MIGRATION)


@dataclass
class RunResult:
    """
    Everything a run produced.

    Attributes:
        run_id: Run identifier
        databases: Scanned and resolved databases, keyed by source name
        glm: Location map after reconciliation
        reconciliation: Derived entries and unresolved locations
        audit: Translations applied during the run
        outcomes: One dispatch outcome per resolved table
        cancelled: The run was cancelled before every table was resolved
        started_at: Start of the run
        finished_at: End of the run
    """

    run_id: str
    databases: dict[str, DatabaseUnit]
    glm: GlobalLocationMap
    reconciliation: ReconciliationReport
    audit: TranslationAudit
    outcomes: list[DispatchOutcome] = field(default_factory=list)
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    def table(self, database: str, table: str) -> MigrationUnit:
        """
        Look up a table of the run.

        Raises:
            KeyError: If the database or table was not part of the run
        """
        return self.databases[database].tables[table]

    @property
    def phase_counts(self) -> dict[PhaseState, int]:
        counts = {phase: 0 for phase in PhaseState}
        for db in self.databases.values():
            for unit in db.tables.values():
                counts[unit.phase_state] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "phase_counts": {phase.value: n for phase, n in self.phase_counts.items()},
            "databases": {
                name: {
                    **db.to_dict(),
                    "tables": {t: unit.to_dict() for t, unit in sorted(db.tables.items())},
                }
                for name, db in sorted(self.databases.items())
            },
            "glm": self.glm.to_dict(),
            "reconciliation": self.reconciliation.to_dict(),
            "translations": self.audit.to_dict(),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


class MigrationRunner:
    """
    Coordinates one migration run over a LEFT and a RIGHT catalog.

    The location map and translation audit are shared by every table
    worker of the run. Each table is owned by the single worker resolving
    it.

    Example:
        >>> runner = MigrationRunner(config, catalogs, repository=repo)
        >>> task = asyncio.create_task(runner.run("run-1"))
        >>> runner.cancel()
        >>> result = await task
        >>> result.cancelled
        True
    """

    def __init__(
        self,
        config: RunConfig,
        catalogs: Mapping[Environment, CatalogEndpoint],
        repository: RunSnapshotRepository | None = None,
        rewriter: SchemaRewriter | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the runner.

        Args:
            config: Run configuration
            catalogs: Endpoint per environment (LEFT is required)
            repository: Snapshot repository (defaults to in-memory)
            rewriter: Schema rewriter handed to the dispatcher
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)

        Raises:
            ValueError: If no LEFT catalog is given
        """
        if Environment.LEFT not in catalogs:
            raise ValueError("A LEFT catalog endpoint is required")
        self._config = config
        self._catalogs = dict(catalogs)
        self._repository: RunSnapshotRepository = repository or InMemoryRunSnapshotRepository()
        self._rewriter = rewriter
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._cancel_event = asyncio.Event()

    @property
    def repository(self) -> RunSnapshotRepository:
        return self._repository

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """
        Stop scheduling tables.

        Tables already being resolved finish their handler; tables not yet
        started stay in INIT.
        """
        logger.info("Run cancellation requested")
        self._cancel_event.set()

    @property
    def _source_only(self) -> bool:
        return self._config.data_strategy in _SOURCE_ONLY_STRATEGIES

    async def _call(
        self,
        environment: Environment,
        operation: str,
        *args: Any,
        database: str | None = None,
        table: str | None = None,
    ) -> Any:
        """
        Call a catalog endpoint, bounded by the lookup timeout.

        Raises:
            CatalogTimeoutError: If the call does not answer in time
            CatalogUnavailableError: If the endpoint raises
        """
        catalog = self._catalogs[environment]
        timeout = self._config.lookup_timeout
        try:
            return await asyncio.wait_for(getattr(catalog, operation)(*args), timeout)
        except TimeoutError as e:
            raise CatalogTimeoutError(
                environment.value, operation, timeout, database=database, table=table
            ) from e
        except CatalogError:
            raise
        except Exception as e:
            raise CatalogUnavailableError(
                environment.value,
                operation,
                str(e) or type(e).__name__,
                database=database,
                table=table,
            ) from e

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def _scan_database(self, name: str) -> DatabaseUnit:
        db = DatabaseUnit(name=name, resolved_name=self._config.resolved_database(name))

        try:
            properties = await self._call(Environment.LEFT, "get_database", name, database=name)
            if properties is None:
                logger.warning("Database %s not found on LEFT", name)
                db.add_issue(Environment.LEFT, MessageCode.DATABASE_NOT_FOUND.format(name))
                return db
            db.properties[Environment.LEFT] = dict(properties)
            tables = await self._call(Environment.LEFT, "list_tables", name, database=name)
        except CatalogError as e:
            logger.warning("LEFT scan of %s failed: %s", name, e)
            db.add_issue(
                Environment.LEFT, MessageCode.ENDPOINT_UNAVAILABLE.format("LEFT", e, name)
            )
            return db

        if not self._source_only and Environment.RIGHT in self._catalogs:
            try:
                right = await self._call(
                    Environment.RIGHT, "get_database", db.resolved_name, database=name
                )
            except CatalogError as e:
                logger.warning("RIGHT lookup of %s failed: %s", db.resolved_name, e)
                db.add_issue(
                    Environment.RIGHT,
                    MessageCode.ENDPOINT_UNAVAILABLE.format("RIGHT", e, db.resolved_name),
                )
            else:
                if right is not None:
                    db.properties[Environment.RIGHT] = dict(right)

        semaphore = asyncio.Semaphore(self._config.concurrency)

        async def scan(table: str) -> MigrationUnit:
            async with semaphore:
                return await self._scan_table(db, table)

        units = await asyncio.gather(*(scan(table) for table in tables))
        db.tables = {unit.name: unit for unit in units}
        logger.info("Scanned %s: %d tables", name, len(db.tables))
        return db

    async def _scan_table(self, db: DatabaseUnit, name: str) -> MigrationUnit:
        unit = MigrationUnit(database=db.name, name=name)
        left = unit.env(Environment.LEFT)
        left.name = name

        try:
            definition = await self._call(
                Environment.LEFT, "get_definition", db.name, name, database=db.name, table=name
            )
            if definition is None:
                left.exists = False
                unit.add_issue(Environment.LEFT, MessageCode.SOURCE_TABLE_MISSING.format())
                return unit
            left.exists = True
            left.definition = list(definition)
            left.partitioned = bool(ddl.partition_columns(left.definition))
            if left.partitioned:
                left.partitions = dict(
                    await self._call(
                        Environment.LEFT,
                        "list_partitions",
                        db.name,
                        name,
                        database=db.name,
                        table=name,
                    )
                )
            left.owner = await self._call(
                Environment.LEFT, "get_owner", db.name, name, database=db.name, table=name
            )
        except CatalogError as e:
            logger.warning("LEFT scan of %s.%s failed: %s", db.name, name, e)
            unit.add_error(Environment.LEFT, str(e))
            unit.transition_to(PhaseState.ERROR)
            return unit

        if not self._source_only and Environment.RIGHT in self._catalogs:
            await self._scan_right(db, unit)
        return unit

    async def _scan_right(self, db: DatabaseUnit, unit: MigrationUnit) -> None:
        right = unit.env(Environment.RIGHT)
        target_db = db.resolved_name
        try:
            exists = await self._call(
                Environment.RIGHT,
                "table_exists",
                target_db,
                unit.name,
                database=db.name,
                table=unit.name,
            )
            if not exists:
                return
            definition = await self._call(
                Environment.RIGHT,
                "get_definition",
                target_db,
                unit.name,
                database=db.name,
                table=unit.name,
            )
            right.name = unit.name
            right.exists = definition is not None
            right.definition = list(definition or [])
            right.partitioned = bool(ddl.partition_columns(right.definition))
            if right.partitioned:
                right.partitions = dict(
                    await self._call(
                        Environment.RIGHT,
                        "list_partitions",
                        target_db,
                        unit.name,
                        database=db.name,
                        table=unit.name,
                    )
                )
        except CatalogError as e:
            logger.warning("RIGHT lookup of %s.%s failed: %s", target_db, unit.name, e)
            right.known = False
            right.exists = False
            right.definition = []
            right.partitions = {}
            unit.add_issue(
                Environment.RIGHT,
                MessageCode.ENDPOINT_UNAVAILABLE.format("RIGHT", e, f"{target_db}.{unit.name}"),
            )

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def _collect_sources(self, translator: LocationTranslator, db: DatabaseUnit) -> None:
        builder = translator.warehouse_builder
        level = self._config.consolidation_level_base
        for unit in db.tables.values():
            left = unit.env(Environment.LEFT)
            if not left.definition or ddl.is_view(left.definition):
                continue
            location = ddl.get_location(left.definition)
            if not location:
                continue
            table_type = ddl.table_type(left.definition)
            builder.add_table_source(db.name, unit.name, table_type, location, level)
            for spec, partition_location in sorted(left.partitions.items()):
                if not partition_location:
                    continue
                builder.add_partition_source(
                    db.name,
                    unit.name,
                    table_type,
                    spec,
                    location,
                    partition_location,
                    level,
                    self._config.partition_level_mismatch,
                )

    def _reconcile(
        self, translator: LocationTranslator, databases: dict[str, DatabaseUnit]
    ) -> ReconciliationReport:
        builder = translator.warehouse_builder
        for name, plan in self._config.warehouse_plans.items():
            builder.add_warehouse_plan(name, plan.external_directory, plan.managed_directory)
        builder.freeze()

        warehouse = self._config.transfer.warehouse
        default = None
        if warehouse.external_directory and warehouse.managed_directory:
            default = Warehouse(warehouse.external_directory, warehouse.managed_directory)

        report = reconcile_warehouse_plans(
            builder,
            translator.glm,
            self._config.resolved_database,
            convert_managed=self._config.convert_managed,
            default_warehouse=default,
        )
        if self._config.warehouse_plans:
            for name, locations in report.unresolved.items():
                db = databases.get(name)
                if db is None:
                    continue
                for location in locations:
                    db.add_issue(
                        Environment.LEFT, MessageCode.NO_WAREHOUSE_PLAN.format(name, location)
                    )
        return report

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run_statements(
        self,
        environment: Environment,
        statements: list[SqlStatement],
        *,
        database: str,
        table: str | None = None,
    ) -> str | None:
        """Run statements on an endpoint; returns the failure text, None on success."""
        if environment not in self._catalogs:
            return f"no {environment.value} catalog endpoint"
        try:
            ok = await self._call(
                environment,
                "run_statements",
                list(statements),
                database=database,
                table=table,
            )
        except CatalogError as e:
            return str(e)
        return None if ok else f"{len(statements)} statements rejected by the endpoint"

    async def _execute_database(self, db: DatabaseUnit, environment: Environment) -> bool:
        statements = db.sql.get(environment, [])
        if not statements:
            return True
        with self._tracer.span(
            "hmsmirror.runner.execute_database",
            {ATTR_DATABASE: db.name, ATTR_STATEMENT_COUNT: len(statements)},
        ):
            failure = await self._run_statements(environment, statements, database=db.name)
        if failure is not None:
            logger.error(
                "Database SQL for %s failed on %s: %s", db.name, environment.value, failure
            )
            db.add_issue(environment, MessageCode.DATABASE_DDL_FAILED.format(environment.value))
            return False
        return True

    async def _execute_table(self, unit: MigrationUnit, outcome: DispatchOutcome) -> None:
        for environment in outcome.execution_order:
            statements = unit.env(environment).sql
            if not statements:
                continue
            failure = await self._run_statements(
                environment, statements, database=unit.database, table=unit.name
            )
            if failure is not None:
                logger.error(
                    "%s SQL for %s.%s failed: %s",
                    environment.value,
                    unit.database,
                    unit.name,
                    failure,
                )
                unit.add_error(
                    environment, MessageCode.EXECUTION_FAILED.format(environment.value, failure)
                )
                unit.transition_to(PhaseState.ERROR)
                return

        for environment in outcome.execution_order:
            cleanup = unit.env(environment).cleanup_sql
            if not cleanup:
                continue
            failure = await self._run_statements(
                environment, cleanup, database=unit.database, table=unit.name
            )
            if failure is not None:
                logger.warning(
                    "Cleanup for %s.%s failed on %s: %s",
                    unit.database,
                    unit.name,
                    environment.value,
                    failure,
                )
                unit.add_issue(environment, MessageCode.CLEANUP_FAILED.format(failure))

        unit.transition_to(PhaseState.EXECUTED)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _save_table(self, run_id: str, unit: MigrationUnit) -> None:
        await self._repository.save_table(TableSnapshot.from_unit(run_id, unit))

    async def _save_database(
        self, run_id: str, db: DatabaseUnit, translator: LocationTranslator
    ) -> None:
        translations = [
            {"environment": environment.value, **record.to_dict()}
            for environment in (Environment.LEFT, Environment.RIGHT)
            for record in translator.audit.get_translations(db.name, environment)
        ]
        await self._repository.save_database(
            DatabaseSnapshot.from_database(run_id, db, translations)
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _process_table(
        self,
        run_id: str,
        dispatcher: StrategyDispatcher,
        db: DatabaseUnit,
        unit: MigrationUnit,
        semaphore: asyncio.Semaphore,
        execute: bool,
    ) -> DispatchOutcome | None:
        async with semaphore:
            if self._cancel_event.is_set():
                logger.debug("Skipping %s.%s, run cancelled", db.name, unit.name)
                return None
            if unit.phase_state == PhaseState.ERROR:
                return None

            outcome: DispatchOutcome | None = None
            try:
                outcome = dispatcher.resolve(db, unit)
                await self._save_table(run_id, unit)

                if execute and outcome.executable and not self._cancel_event.is_set():
                    await self._execute_table(unit, outcome)
                    await self._save_table(run_id, unit)
            except Exception as e:
                logger.exception("Processing of %s.%s failed", db.name, unit.name)
                unit.add_error(Environment.LEFT, str(e) or type(e).__name__)
                if not unit.phase_state.is_terminal:
                    unit.transition_to(PhaseState.ERROR)
                if outcome is not None:
                    outcome.success = False
                    outcome.phase_state = unit.phase_state
                    outcome.error = str(e)
            return outcome

    async def run(self, run_id: str | None = None) -> RunResult:
        """
        Execute the run.

        Args:
            run_id: Run identifier (generated if not provided)

        Returns:
            The databases, tables and location state of the run

        Raises:
            RequiredConfigurationError: If the configuration cannot be used
        """
        ensure_valid(self._config)
        run_id = run_id or str(uuid4())
        started_at = datetime.now(UTC)

        with self._tracer.span(
            "hmsmirror.runner.run",
            {ATTR_RUN_ID: run_id, ATTR_DATA_STRATEGY: self._config.data_strategy.value},
        ) as span:
            logger.info(
                "Starting run %s (%s) for %d databases",
                run_id,
                self._config.data_strategy.value,
                len(self._config.databases),
            )
            translator = LocationTranslator(self._config, tracer=self._tracer)

            databases: dict[str, DatabaseUnit] = {}
            for name in self._config.databases:
                db = await self._scan_database(name)
                databases[name] = db
                self._collect_sources(translator, db)
                for unit in db.tables.values():
                    await self._save_table(run_id, unit)

            report = self._reconcile(translator, databases)
            if span is not None:
                span.set_attribute(ATTR_GLM_SIZE, len(translator.glm))

            dispatcher = StrategyDispatcher(
                self._config,
                translator,
                rewriter=self._rewriter,
                run_id=run_id,
                tracer=self._tracer,
            )
            semaphore = asyncio.Semaphore(self._config.concurrency)
            result = RunResult(
                run_id=run_id,
                databases=databases,
                glm=translator.glm,
                reconciliation=report,
                audit=translator.audit,
                started_at=started_at,
            )

            for db in databases.values():
                if self._cancel_event.is_set():
                    break
                environment = build_database_sql(self._config, translator, db)
                execute = self._config.execute and self._config.data_strategy != DataStrategy.DUMP
                if execute:
                    execute = await self._execute_database(db, environment)
                await self._save_database(run_id, db, translator)

                outcomes = await asyncio.gather(
                    *(
                        self._process_table(run_id, dispatcher, db, unit, semaphore, execute)
                        for _, unit in sorted(db.tables.items())
                    )
                )
                result.outcomes.extend(o for o in outcomes if o is not None)
                await self._save_database(run_id, db, translator)

            result.cancelled = self._cancel_event.is_set()
            result.finished_at = datetime.now(UTC)

        logger.info(
            "Run %s finished%s: %s",
            run_id,
            " (cancelled)" if result.cancelled else "",
            ", ".join(f"{p.value}={n}" for p, n in result.phase_counts.items() if n),
        )
        return result


__all__ = [
    "MigrationRunner",
    "RunResult",
]
