"""
Snapshot repository for migration runs.

Every table and database of a run is written as a snapshot (issues, SQL
plans, phase, create strategy, translation audit), keyed by run id,
database and table. Snapshots are upserted at each phase transition, so
the latest write wins. They are read back for reporting and for
inspecting a finished run.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from hmsmirror.models import DatabaseUnit, DataStrategy, MigrationUnit, PhaseState
from hmsmirror.observability import (
    ATTR_DATABASE,
    ATTR_PHASE_STATE,
    ATTR_RUN_ID,
    ATTR_TABLE,
    Tracer,
    create_tracer,
)
from hmsmirror.serialization import json_dumps, json_loads

if TYPE_CHECKING:
    import aiosqlite

SQLITE_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS hms_mirror_table_snapshots (
        run_id TEXT NOT NULL,
        database_name TEXT NOT NULL,
        table_name TEXT NOT NULL,
        strategy TEXT,
        phase_state TEXT NOT NULL,
        payload TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (run_id, database_name, table_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS hms_mirror_database_snapshots (
        run_id TEXT NOT NULL,
        database_name TEXT NOT NULL,
        payload TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (run_id, database_name)
    )
    """,
)

POSTGRESQL_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS hms_mirror_table_snapshots (
        run_id VARCHAR(64) NOT NULL,
        database_name VARCHAR(255) NOT NULL,
        table_name VARCHAR(255) NOT NULL,
        strategy VARCHAR(64),
        phase_state VARCHAR(32) NOT NULL,
        payload JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (run_id, database_name, table_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS hms_mirror_database_snapshots (
        run_id VARCHAR(64) NOT NULL,
        database_name VARCHAR(255) NOT NULL,
        payload JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (run_id, database_name)
    )
    """,
)


@dataclass(frozen=True)
class TableSnapshot:
    """
    Serialized state of one table of a run.

    Attributes:
        run_id: Run identifier
        database: Source database name
        table: Table name
        phase_state: Phase at the time of the write
        strategy: Strategy assigned to the table
        payload: ``MigrationUnit.to_dict()`` output
        updated_at: Time of the write
    """

    run_id: str
    database: str
    table: str
    phase_state: PhaseState
    strategy: DataStrategy | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_unit(cls, run_id: str, unit: MigrationUnit) -> "TableSnapshot":
        return cls(
            run_id=run_id,
            database=unit.database,
            table=unit.name,
            phase_state=unit.phase_state,
            strategy=unit.strategy,
            payload=unit.to_dict(),
        )


@dataclass(frozen=True)
class DatabaseSnapshot:
    """
    Serialized state of one database of a run.

    The payload holds ``DatabaseUnit.to_dict()`` plus the translation audit
    of the database under ``"translations"``.
    """

    run_id: str
    database: str
    payload: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_database(
        cls,
        run_id: str,
        db: DatabaseUnit,
        translations: list[dict[str, Any]] | None = None,
    ) -> "DatabaseSnapshot":
        payload = db.to_dict()
        payload["translations"] = list(translations or [])
        return cls(run_id=run_id, database=db.name, payload=payload)


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_payload(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    result: dict[str, Any] = json_loads(value)
    return result


def _table_from_row(row: Any) -> TableSnapshot:
    return TableSnapshot(
        run_id=row[0],
        database=row[1],
        table=row[2],
        strategy=DataStrategy(row[3]) if row[3] else None,
        phase_state=PhaseState(row[4]),
        payload=_parse_payload(row[5]),
        updated_at=_parse_time(row[6]),
    )


def _database_from_row(row: Any) -> DatabaseSnapshot:
    return DatabaseSnapshot(
        run_id=row[0],
        database=row[1],
        payload=_parse_payload(row[2]),
        updated_at=_parse_time(row[3]),
    )


@runtime_checkable
class RunSnapshotRepository(Protocol):
    """
    Protocol for snapshot repositories.

    Writes are upserts keyed by (run_id, database[, table]).
    """

    async def save_table(self, snapshot: TableSnapshot) -> None:
        """Insert or replace the snapshot of a table."""
        ...

    async def save_database(self, snapshot: DatabaseSnapshot) -> None:
        """Insert or replace the snapshot of a database."""
        ...

    async def get_table(self, run_id: str, database: str, table: str) -> TableSnapshot | None:
        ...

    async def get_database(self, run_id: str, database: str) -> DatabaseSnapshot | None:
        ...

    async def list_tables(self, run_id: str, database: str | None = None) -> list[TableSnapshot]:
        """
        List table snapshots of a run, ordered by database and table.

        Args:
            run_id: Run identifier
            database: Restrict to one database
        """
        ...

    async def list_runs(self) -> list[str]:
        """Run ids with at least one snapshot, sorted."""
        ...

    async def delete_run(self, run_id: str) -> int:
        """
        Delete every snapshot of a run.

        Returns:
            Number of snapshots deleted
        """
        ...


class InMemoryRunSnapshotRepository:
    """
    In-memory snapshot repository for testing and dry runs.

    Example:
        >>> repo = InMemoryRunSnapshotRepository()
        >>> await repo.save_table(TableSnapshot.from_unit("run-1", unit))
    """

    def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._tables: dict[tuple[str, str, str], TableSnapshot] = {}
        self._databases: dict[tuple[str, str], DatabaseSnapshot] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def save_table(self, snapshot: TableSnapshot) -> None:
        with self._tracer.span(
            "hmsmirror.snapshots.save_table",
            {
                ATTR_RUN_ID: snapshot.run_id,
                ATTR_DATABASE: snapshot.database,
                ATTR_TABLE: snapshot.table,
                ATTR_PHASE_STATE: snapshot.phase_state.value,
            },
        ):
            async with self._lock:
                key = (snapshot.run_id, snapshot.database, snapshot.table)
                self._tables[key] = snapshot

    async def save_database(self, snapshot: DatabaseSnapshot) -> None:
        with self._tracer.span(
            "hmsmirror.snapshots.save_database",
            {ATTR_RUN_ID: snapshot.run_id, ATTR_DATABASE: snapshot.database},
        ):
            async with self._lock:
                self._databases[(snapshot.run_id, snapshot.database)] = snapshot

    async def get_table(self, run_id: str, database: str, table: str) -> TableSnapshot | None:
        async with self._lock:
            return self._tables.get((run_id, database, table))

    async def get_database(self, run_id: str, database: str) -> DatabaseSnapshot | None:
        async with self._lock:
            return self._databases.get((run_id, database))

    async def list_tables(self, run_id: str, database: str | None = None) -> list[TableSnapshot]:
        async with self._lock:
            return [
                snapshot
                for key, snapshot in sorted(self._tables.items())
                if key[0] == run_id and (database is None or key[1] == database)
            ]

    async def list_runs(self) -> list[str]:
        async with self._lock:
            runs = {key[0] for key in self._tables} | {key[0] for key in self._databases}
            return sorted(runs)

    async def delete_run(self, run_id: str) -> int:
        async with self._lock:
            tables = [key for key in self._tables if key[0] == run_id]
            databases = [key for key in self._databases if key[0] == run_id]
            for table_key in tables:
                del self._tables[table_key]
            for database_key in databases:
                del self._databases[database_key]
            return len(tables) + len(databases)

    async def clear(self) -> None:
        """Clear all snapshots. Useful for test isolation."""
        async with self._lock:
            self._tables.clear()
            self._databases.clear()


class SQLiteRunSnapshotRepository:
    """
    SQLite implementation of the snapshot repository.

    SQLite-specific adaptations:
    - Payloads stored as JSON TEXT
    - Timestamps stored as TEXT in ISO 8601 format
    - Uses UPSERT with ON CONFLICT syntax (SQLite 3.24+)

    Example:
        >>> async with aiosqlite.connect("runs.db") as db:
        ...     repo = SQLiteRunSnapshotRepository(db)
        ...     await repo.initialize()
        ...     await repo.save_table(TableSnapshot.from_unit("run-1", unit))
    """

    def __init__(
        self,
        connection: "aiosqlite.Connection",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the snapshot repository.

        Args:
            connection: aiosqlite database connection
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._connection = connection

    async def initialize(self) -> None:
        """Create the snapshot tables if they don't exist."""
        for statement in SQLITE_SCHEMA:
            await self._connection.execute(statement)
        await self._connection.commit()

    async def save_table(self, snapshot: TableSnapshot) -> None:
        with self._tracer.span(
            "hmsmirror.snapshots.save_table",
            {
                ATTR_RUN_ID: snapshot.run_id,
                ATTR_DATABASE: snapshot.database,
                ATTR_TABLE: snapshot.table,
                ATTR_PHASE_STATE: snapshot.phase_state.value,
            },
        ):
            await self._connection.execute(
                """
                INSERT INTO hms_mirror_table_snapshots
                    (run_id, database_name, table_name, strategy, phase_state,
                     payload, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (run_id, database_name, table_name) DO UPDATE
                SET strategy = excluded.strategy,
                    phase_state = excluded.phase_state,
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (
                    snapshot.run_id,
                    snapshot.database,
                    snapshot.table,
                    snapshot.strategy.value if snapshot.strategy else None,
                    snapshot.phase_state.value,
                    json_dumps(snapshot.payload),
                    snapshot.updated_at.isoformat(),
                ),
            )
            await self._connection.commit()

    async def save_database(self, snapshot: DatabaseSnapshot) -> None:
        with self._tracer.span(
            "hmsmirror.snapshots.save_database",
            {ATTR_RUN_ID: snapshot.run_id, ATTR_DATABASE: snapshot.database},
        ):
            await self._connection.execute(
                """
                INSERT INTO hms_mirror_database_snapshots
                    (run_id, database_name, payload, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (run_id, database_name) DO UPDATE
                SET payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (
                    snapshot.run_id,
                    snapshot.database,
                    json_dumps(snapshot.payload),
                    snapshot.updated_at.isoformat(),
                ),
            )
            await self._connection.commit()

    async def get_table(self, run_id: str, database: str, table: str) -> TableSnapshot | None:
        cursor = await self._connection.execute(
            """
            SELECT run_id, database_name, table_name, strategy, phase_state,
                   payload, updated_at
            FROM hms_mirror_table_snapshots
            WHERE run_id = ? AND database_name = ? AND table_name = ?
            """,
            (run_id, database, table),
        )
        row = await cursor.fetchone()
        return _table_from_row(row) if row else None

    async def get_database(self, run_id: str, database: str) -> DatabaseSnapshot | None:
        cursor = await self._connection.execute(
            """
            SELECT run_id, database_name, payload, updated_at
            FROM hms_mirror_database_snapshots
            WHERE run_id = ? AND database_name = ?
            """,
            (run_id, database),
        )
        row = await cursor.fetchone()
        return _database_from_row(row) if row else None

    async def list_tables(self, run_id: str, database: str | None = None) -> list[TableSnapshot]:
        query = """
            SELECT run_id, database_name, table_name, strategy, phase_state,
                   payload, updated_at
            FROM hms_mirror_table_snapshots
            WHERE run_id = ?
        """
        params: tuple[str, ...] = (run_id,)
        if database is not None:
            query += " AND database_name = ?"
            params = (run_id, database)
        query += " ORDER BY database_name, table_name"
        cursor = await self._connection.execute(query, params)
        rows = await cursor.fetchall()
        return [_table_from_row(row) for row in rows]

    async def list_runs(self) -> list[str]:
        cursor = await self._connection.execute(
            """
            SELECT run_id FROM hms_mirror_table_snapshots
            UNION
            SELECT run_id FROM hms_mirror_database_snapshots
            ORDER BY run_id
            """
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def delete_run(self, run_id: str) -> int:
        deleted = 0
        for table in ("hms_mirror_table_snapshots", "hms_mirror_database_snapshots"):
            cursor = await self._connection.execute(
                f"DELETE FROM {table} WHERE run_id = ?", (run_id,)
            )
            deleted += cursor.rowcount
        await self._connection.commit()
        return deleted


class PostgreSQLRunSnapshotRepository:
    """
    PostgreSQL implementation of the snapshot repository.

    Accepts an AsyncEngine (a connection is opened per call, in a
    transaction for writes) or an AsyncConnection whose transaction the
    caller manages.

    Example:
        >>> engine = create_async_engine("postgresql+asyncpg://...")
        >>> repo = PostgreSQLRunSnapshotRepository(engine)
        >>> await repo.initialize()
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    @asynccontextmanager
    async def _connect(self, transactional: bool = True) -> AsyncIterator[AsyncConnection]:
        if isinstance(self.conn, AsyncConnection):
            yield self.conn
        elif transactional:
            async with self.conn.begin() as connection:
                yield connection
        else:
            async with self.conn.connect() as connection:
                yield connection

    async def initialize(self) -> None:
        async with self._connect() as conn:
            for statement in POSTGRESQL_SCHEMA:
                await conn.execute(text(statement))

    async def save_table(self, snapshot: TableSnapshot) -> None:
        with self._tracer.span(
            "hmsmirror.snapshots.save_table",
            {
                ATTR_RUN_ID: snapshot.run_id,
                ATTR_DATABASE: snapshot.database,
                ATTR_TABLE: snapshot.table,
                ATTR_PHASE_STATE: snapshot.phase_state.value,
            },
        ):
            query = text("""
                INSERT INTO hms_mirror_table_snapshots
                    (run_id, database_name, table_name, strategy, phase_state,
                     payload, updated_at)
                VALUES (:run_id, :database, :table, :strategy, :phase_state,
                        CAST(:payload AS JSONB), :updated_at)
                ON CONFLICT (run_id, database_name, table_name) DO UPDATE
                SET strategy = EXCLUDED.strategy,
                    phase_state = EXCLUDED.phase_state,
                    payload = EXCLUDED.payload,
                    updated_at = EXCLUDED.updated_at
            """)
            params = {
                "run_id": snapshot.run_id,
                "database": snapshot.database,
                "table": snapshot.table,
                "strategy": snapshot.strategy.value if snapshot.strategy else None,
                "phase_state": snapshot.phase_state.value,
                "payload": json_dumps(snapshot.payload),
                "updated_at": snapshot.updated_at,
            }
            async with self._connect() as conn:
                await conn.execute(query, params)

    async def save_database(self, snapshot: DatabaseSnapshot) -> None:
        with self._tracer.span(
            "hmsmirror.snapshots.save_database",
            {ATTR_RUN_ID: snapshot.run_id, ATTR_DATABASE: snapshot.database},
        ):
            query = text("""
                INSERT INTO hms_mirror_database_snapshots
                    (run_id, database_name, payload, updated_at)
                VALUES (:run_id, :database, CAST(:payload AS JSONB), :updated_at)
                ON CONFLICT (run_id, database_name) DO UPDATE
                SET payload = EXCLUDED.payload,
                    updated_at = EXCLUDED.updated_at
            """)
            params = {
                "run_id": snapshot.run_id,
                "database": snapshot.database,
                "payload": json_dumps(snapshot.payload),
                "updated_at": snapshot.updated_at,
            }
            async with self._connect() as conn:
                await conn.execute(query, params)

    async def get_table(self, run_id: str, database: str, table: str) -> TableSnapshot | None:
        query = text("""
            SELECT run_id, database_name, table_name, strategy, phase_state,
                   payload, updated_at
            FROM hms_mirror_table_snapshots
            WHERE run_id = :run_id AND database_name = :database AND table_name = :table
        """)
        params = {"run_id": run_id, "database": database, "table": table}
        async with self._connect(transactional=False) as conn:
            result = await conn.execute(query, params)
            row = result.fetchone()
            return _table_from_row(row) if row else None

    async def get_database(self, run_id: str, database: str) -> DatabaseSnapshot | None:
        query = text("""
            SELECT run_id, database_name, payload, updated_at
            FROM hms_mirror_database_snapshots
            WHERE run_id = :run_id AND database_name = :database
        """)
        async with self._connect(transactional=False) as conn:
            result = await conn.execute(query, {"run_id": run_id, "database": database})
            row = result.fetchone()
            return _database_from_row(row) if row else None

    async def list_tables(self, run_id: str, database: str | None = None) -> list[TableSnapshot]:
        query = text("""
            SELECT run_id, database_name, table_name, strategy, phase_state,
                   payload, updated_at
            FROM hms_mirror_table_snapshots
            WHERE run_id = :run_id
              AND (CAST(:database AS VARCHAR) IS NULL OR database_name = :database)
            ORDER BY database_name, table_name
        """)
        async with self._connect(transactional=False) as conn:
            result = await conn.execute(query, {"run_id": run_id, "database": database})
            return [_table_from_row(row) for row in result.fetchall()]

    async def list_runs(self) -> list[str]:
        query = text("""
            SELECT run_id FROM hms_mirror_table_snapshots
            UNION
            SELECT run_id FROM hms_mirror_database_snapshots
            ORDER BY run_id
        """)
        async with self._connect(transactional=False) as conn:
            result = await conn.execute(query)
            return [row[0] for row in result.fetchall()]

    async def delete_run(self, run_id: str) -> int:
        deleted = 0
        async with self._connect() as conn:
            for table in ("hms_mirror_table_snapshots", "hms_mirror_database_snapshots"):
                result = await conn.execute(
                    text(f"DELETE FROM {table} WHERE run_id = :run_id"), {"run_id": run_id}
                )
                deleted += result.rowcount
        return deleted
