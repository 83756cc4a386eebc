"""
Snapshot persistence for migration runs.

Example:
    >>> from hmsmirror.repositories import InMemoryRunSnapshotRepository
    >>> repo = InMemoryRunSnapshotRepository()
"""

from hmsmirror.repositories.snapshots import (
    POSTGRESQL_SCHEMA,
    SQLITE_SCHEMA,
    DatabaseSnapshot,
    InMemoryRunSnapshotRepository,
    PostgreSQLRunSnapshotRepository,
    RunSnapshotRepository,
    SQLiteRunSnapshotRepository,
    TableSnapshot,
)

__all__ = [
    "RunSnapshotRepository",
    "TableSnapshot",
    "DatabaseSnapshot",
    "InMemoryRunSnapshotRepository",
    "SQLiteRunSnapshotRepository",
    "PostgreSQLRunSnapshotRepository",
    "SQLITE_SCHEMA",
    "POSTGRESQL_SCHEMA",
]
