"""
Unit tests for StrategyDispatcher.

Tests for:
- Routing by eligibility, views and missing tables
- Delegation trail and cycle detection
- Conversion of handler failures into table errors
- DispatchOutcome properties
- Tracing
"""

import pytest

from hmsmirror.messages import MessageCode
from hmsmirror.models import (
    CopySpec,
    CreateStrategy,
    DataStrategy,
    Environment,
    PhaseState,
)
from hmsmirror.rewriter import HiveSchemaRewriter
from hmsmirror.strategies import HANDLERS, DispatchOutcome
from tests.conftest import build_config, build_dispatcher
from tests.fixtures import (
    acid_definition,
    external_definition,
    make_database,
    make_unit,
)


class FailingRewriter(HiveSchemaRewriter):
    """Rewriter that fails for tables named ``bad``."""

    def rewrite(self, definition: list[str], spec: CopySpec) -> list[str]:
        if "`sales.bad`" in definition[0]:
            raise RuntimeError("boom")
        return super().rewrite(definition, spec)


class TestRouting:
    """Tests for the checks applied before any handler runs."""

    def test_missing_table_is_skipped(self, dispatcher):
        unit = make_unit(None, name="ghost")

        outcome = dispatcher.resolve(make_database(), unit)

        assert not outcome.success
        assert outcome.trail == []
        assert outcome.phase_state == PhaseState.CALCULATED_SQL
        assert unit.env(Environment.LEFT).issues == [MessageCode.SOURCE_TABLE_MISSING.format()]
        assert not outcome.executable

    def test_acid_table_skipped_when_acid_migration_is_off(self, dispatcher):
        unit = make_unit(acid_definition())

        outcome = dispatcher.resolve(make_database(), unit)

        assert not outcome.success
        assert outcome.trail == []
        assert outcome.phase_state == PhaseState.CALCULATED_SQL
        assert unit.env(Environment.LEFT).issues == [MessageCode.ACID_NOT_ON.format()]

    def test_non_acid_table_skipped_with_acid_only(self):
        dispatcher = build_dispatcher(build_config(migrate_acid={"enabled": True, "only": True}))
        unit = make_unit(external_definition())

        outcome = dispatcher.resolve(make_database(), unit)

        assert not outcome.success
        assert unit.env(Environment.LEFT).issues == [MessageCode.ACID_ONLY_SKIPPED.format()]

    def test_dump_ignores_acid_settings(self):
        dispatcher = build_dispatcher(build_config(data_strategy="DUMP"))
        unit = make_unit(acid_definition())

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.success
        assert outcome.trail == [DataStrategy.DUMP]

    def test_target_only_table_left_without_sync(self, dispatcher):
        unit = make_unit(None, name="orders", right_definition=external_definition())

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.success
        right = unit.env(Environment.RIGHT)
        assert right.create_strategy == CreateStrategy.LEAVE
        assert right.issues == [MessageCode.SCHEMA_EXISTS_TARGET_MISMATCH.format()]

    def test_unknown_target_counts_as_absent(self, dispatcher):
        unit = make_unit(external_definition(), right_definition=external_definition())
        unit.env(Environment.RIGHT).known = False

        dispatcher.resolve(make_database(), unit)

        assert unit.env(Environment.RIGHT).create_strategy == CreateStrategy.CREATE


class TestStrategySelection:
    """Tests for the starting strategy and the delegation trail."""

    def test_run_strategy_used_by_default(self, dispatcher):
        unit = make_unit(external_definition())

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.strategy == DataStrategy.SCHEMA_ONLY
        assert unit.strategy == DataStrategy.SCHEMA_ONLY

    def test_table_strategy_overrides_run_strategy(self, dispatcher):
        unit = make_unit(external_definition())
        unit.strategy = DataStrategy.LINKED

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.trail == [DataStrategy.LINKED]

    def test_explicit_strategy_wins(self, dispatcher):
        unit = make_unit(external_definition())

        outcome = dispatcher.resolve(make_database(), unit, DataStrategy.SQL)

        assert outcome.strategy == DataStrategy.SQL
        assert outcome.resolved_strategy == DataStrategy.SQL

    def test_trail_follows_delegation(self):
        dispatcher = build_dispatcher(build_config(data_strategy="HYBRID"))
        unit = make_unit(external_definition())

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.trail == [DataStrategy.HYBRID, DataStrategy.EXPORT_IMPORT]
        assert unit.strategy_trail == outcome.trail
        assert outcome.resolved_strategy == DataStrategy.EXPORT_IMPORT

    def test_strategy_cycle_fails_the_table(self, dispatcher):
        unit = make_unit(external_definition())
        unit.strategy_trail.append(DataStrategy.SCHEMA_ONLY)

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.phase_state == PhaseState.ERROR
        assert outcome.error == MessageCode.STRATEGY_CYCLE.format("SCHEMA_ONLY", "SCHEMA_ONLY")


class TestFailureIsolation:
    """Tests that a failing handler only fails its own table."""

    def test_handler_exception_becomes_table_error(self, base_config):
        dispatcher = build_dispatcher(base_config, rewriter=FailingRewriter())
        db = make_database()
        bad = make_unit(external_definition("bad"))
        good = make_unit(external_definition("good"))

        bad_outcome = dispatcher.resolve(db, bad)
        good_outcome = dispatcher.resolve(db, good)

        assert bad_outcome.phase_state == PhaseState.ERROR
        assert bad_outcome.error == "boom"
        assert not bad_outcome.success
        assert bad.env(Environment.LEFT).errors == [
            MessageCode.HANDLER_FAILED.format("SCHEMA_ONLY", "boom")
        ]
        assert good_outcome.phase_state == PhaseState.CALCULATED_SQL
        assert good_outcome.success

    def test_error_names_the_delegated_handler(self):
        dispatcher = build_dispatcher(
            build_config(data_strategy="HYBRID"), rewriter=FailingRewriter()
        )
        unit = make_unit(external_definition("bad"))

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.trail == [DataStrategy.HYBRID, DataStrategy.EXPORT_IMPORT]
        assert unit.env(Environment.LEFT).errors == [
            MessageCode.HANDLER_FAILED.format("EXPORT_IMPORT", "boom")
        ]

    def test_handler_errors_move_table_to_error(self):
        dispatcher = build_dispatcher(build_config(data_strategy="LINKED"))
        definition = external_definition()
        definition.insert(4, "STORED BY 'org.apache.hadoop.hive.hbase.HBaseStorageHandler'")
        unit = make_unit(definition)

        outcome = dispatcher.resolve(make_database(), unit)

        assert outcome.phase_state == PhaseState.ERROR
        assert outcome.error is None


class TestDispatchOutcome:
    """Tests for DispatchOutcome."""

    def test_resolved_strategy_defaults_to_start(self):
        outcome = DispatchOutcome("sales", "orders", DataStrategy.SQL)
        assert outcome.resolved_strategy == DataStrategy.SQL

    def test_execution_order(self):
        outcome = DispatchOutcome(
            "sales", "orders", DataStrategy.SQL, trail=[DataStrategy.SQL]
        )
        assert outcome.execution_order == (Environment.LEFT, Environment.RIGHT)

    def test_executable_needs_calculated_sql(self):
        outcome = DispatchOutcome(
            "sales",
            "orders",
            DataStrategy.SQL,
            trail=[DataStrategy.SQL],
            success=True,
            phase_state=PhaseState.ERROR,
        )
        assert not outcome.executable

    def test_to_dict(self):
        outcome = DispatchOutcome(
            "sales",
            "orders",
            DataStrategy.HYBRID,
            trail=[DataStrategy.HYBRID, DataStrategy.SQL],
            success=True,
            phase_state=PhaseState.CALCULATED_SQL,
        )

        assert outcome.to_dict() == {
            "database": "sales",
            "table": "orders",
            "strategy": "HYBRID",
            "trail": ["HYBRID", "SQL"],
            "success": True,
            "phase_state": "CALCULATED_SQL",
            "error": None,
        }

    @pytest.mark.parametrize("strategy", list(DataStrategy))
    def test_every_strategy_has_a_handler(self, strategy):
        assert strategy in HANDLERS


class TestDispatcherTracing:
    """Tests for dispatcher spans."""

    def test_resolve_creates_span(self, base_config, mock_tracer):
        dispatcher = build_dispatcher(base_config, tracer=mock_tracer)
        unit = make_unit(external_definition())

        dispatcher.resolve(make_database(), unit)

        assert mock_tracer.span_names == ["hmsmirror.dispatcher.resolve"]
        _, attributes = mock_tracer.spans[0]
        assert attributes["hmsmirror.table"] == "orders"

    def test_generated_run_id(self, base_config, translator):
        from hmsmirror.strategies import StrategyDispatcher

        dispatcher = StrategyDispatcher(base_config, translator, enable_tracing=False)
        assert dispatcher.run_id
