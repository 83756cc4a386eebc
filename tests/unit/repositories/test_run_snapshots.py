"""
Unit tests for the run snapshot repositories.

Tests for:
- TableSnapshot and DatabaseSnapshot construction
- InMemoryRunSnapshotRepository
- SQLiteRunSnapshotRepository
"""

import pytest

from hmsmirror.models import DataStrategy, Environment, PhaseState
from hmsmirror.observability import MockTracer
from hmsmirror.repositories import (
    DatabaseSnapshot,
    InMemoryRunSnapshotRepository,
    RunSnapshotRepository,
    TableSnapshot,
)
from tests.conftest import skip_if_no_aiosqlite
from tests.fixtures import external_definition, make_database, make_unit


def table_snapshot(
    run_id: str = "run-1", database: str = "sales", table: str = "orders"
) -> TableSnapshot:
    unit = make_unit(external_definition(table), database=database)
    unit.strategy = DataStrategy.SCHEMA_ONLY
    unit.transition_to(PhaseState.STARTED)
    return TableSnapshot.from_unit(run_id, unit)


class TestSnapshots:
    """Tests for snapshot construction."""

    def test_table_snapshot_from_unit(self):
        snapshot = table_snapshot()

        assert snapshot.run_id == "run-1"
        assert snapshot.database == "sales"
        assert snapshot.table == "orders"
        assert snapshot.phase_state == PhaseState.STARTED
        assert snapshot.strategy == DataStrategy.SCHEMA_ONLY
        assert snapshot.payload["environments"]["LEFT"]["exists"] is True

    def test_database_snapshot_carries_translations(self):
        db = make_database()
        db.add_issue(Environment.LEFT, "note")
        translations = [{"environment": "RIGHT", "original": "/a", "translated": "/b"}]

        snapshot = DatabaseSnapshot.from_database("run-1", db, translations)

        assert snapshot.database == "sales"
        assert snapshot.payload["issues"] == {"LEFT": ["note"]}
        assert snapshot.payload["translations"] == translations


class SnapshotRepositoryContract:
    """Behavior shared by every snapshot repository."""

    @pytest.fixture
    def repo(self) -> RunSnapshotRepository:
        raise NotImplementedError

    async def test_save_and_get_table(self, repo):
        await repo.save_table(table_snapshot())

        loaded = await repo.get_table("run-1", "sales", "orders")

        assert loaded is not None
        assert loaded.phase_state == PhaseState.STARTED
        assert loaded.strategy == DataStrategy.SCHEMA_ONLY
        assert loaded.payload["name"] == "orders"

    async def test_get_missing_table(self, repo):
        assert await repo.get_table("run-1", "sales", "missing") is None

    async def test_save_table_upserts(self, repo):
        await repo.save_table(table_snapshot())
        unit = make_unit(external_definition())
        unit.transition_to(PhaseState.ERROR)
        await repo.save_table(TableSnapshot.from_unit("run-1", unit))

        loaded = await repo.get_table("run-1", "sales", "orders")

        assert loaded is not None
        assert loaded.phase_state == PhaseState.ERROR
        assert loaded.strategy is None
        assert len(await repo.list_tables("run-1")) == 1

    async def test_save_and_get_database(self, repo):
        await repo.save_database(DatabaseSnapshot.from_database("run-1", make_database()))

        loaded = await repo.get_database("run-1", "sales")

        assert loaded is not None
        assert loaded.payload["resolved_name"] == "sales"
        assert await repo.get_database("run-2", "sales") is None

    async def test_list_tables_is_ordered_and_filtered(self, repo):
        await repo.save_table(table_snapshot(table="payments"))
        await repo.save_table(table_snapshot(table="orders"))
        await repo.save_table(table_snapshot(database="hr", table="staff"))
        await repo.save_table(table_snapshot(run_id="run-2"))

        all_tables = await repo.list_tables("run-1")
        sales = await repo.list_tables("run-1", "sales")

        assert [(s.database, s.table) for s in all_tables] == [
            ("hr", "staff"),
            ("sales", "orders"),
            ("sales", "payments"),
        ]
        assert [s.table for s in sales] == ["orders", "payments"]

    async def test_list_runs(self, repo):
        await repo.save_table(table_snapshot(run_id="run-2"))
        await repo.save_database(DatabaseSnapshot.from_database("run-1", make_database()))

        assert await repo.list_runs() == ["run-1", "run-2"]

    async def test_delete_run(self, repo):
        await repo.save_table(table_snapshot())
        await repo.save_table(table_snapshot(table="payments"))
        await repo.save_database(DatabaseSnapshot.from_database("run-1", make_database()))
        await repo.save_table(table_snapshot(run_id="run-2"))

        deleted = await repo.delete_run("run-1")

        assert deleted == 3
        assert await repo.list_runs() == ["run-2"]
        assert await repo.get_table("run-1", "sales", "orders") is None


class TestInMemoryRunSnapshotRepository(SnapshotRepositoryContract):
    """Tests for InMemoryRunSnapshotRepository."""

    @pytest.fixture
    def repo(self, snapshot_repo):
        return snapshot_repo

    def test_implements_protocol(self, repo):
        assert isinstance(repo, RunSnapshotRepository)

    async def test_clear(self, repo):
        await repo.save_table(table_snapshot())
        await repo.clear()
        assert await repo.list_runs() == []

    async def test_saves_are_traced(self):
        tracer = MockTracer()
        repo = InMemoryRunSnapshotRepository(tracer=tracer)

        await repo.save_table(table_snapshot())
        await repo.save_database(DatabaseSnapshot.from_database("run-1", make_database()))

        assert tracer.span_names == [
            "hmsmirror.snapshots.save_table",
            "hmsmirror.snapshots.save_database",
        ]


@pytest.mark.sqlite
@skip_if_no_aiosqlite
class TestSQLiteRunSnapshotRepository(SnapshotRepositoryContract):
    """Tests for SQLiteRunSnapshotRepository."""

    @pytest.fixture
    def repo(self, sqlite_snapshot_repo):
        return sqlite_snapshot_repo

    async def test_initialize_is_idempotent(self, repo):
        await repo.initialize()
        await repo.save_table(table_snapshot())
        await repo.initialize()

        assert await repo.get_table("run-1", "sales", "orders") is not None

    async def test_timestamps_survive_round_trip(self, repo):
        snapshot = table_snapshot()
        await repo.save_table(snapshot)

        loaded = await repo.get_table("run-1", "sales", "orders")

        assert loaded is not None
        assert loaded.updated_at == snapshot.updated_at
