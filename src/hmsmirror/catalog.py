"""
Catalog endpoints.

The engine reads table facts from, and runs SQL plans against, one endpoint
per environment. Connection handling lives outside this package; anything
implementing CatalogEndpoint can be plugged into the runner.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

from hmsmirror.models import SqlStatement

logger = logging.getLogger(__name__)


@runtime_checkable
class CatalogEndpoint(Protocol):
    """
    Protocol for a LEFT or RIGHT catalog endpoint.

    Each environment is queried independently. The runner wraps every call
    in a timeout.
    """

    async def list_tables(self, database: str) -> list[str]:
        """List the table names of a database (empty when it doesn't exist)."""
        ...

    async def get_database(self, database: str) -> dict[str, str] | None:
        """Database properties (location, managed_location, owner) or None."""
        ...

    async def table_exists(self, database: str, table: str) -> bool:
        ...

    async def get_definition(self, database: str, table: str) -> list[str] | None:
        """CREATE statement lines, or None when the table doesn't exist."""
        ...

    async def list_partitions(self, database: str, table: str) -> dict[str, str]:
        """Partition spec -> storage location."""
        ...

    async def get_owner(self, database: str, table: str) -> str | None:
        ...

    async def run_statements(self, statements: list[SqlStatement]) -> bool:
        """
        Run statements in order, stopping at the first failure.

        Returns:
            True if every statement succeeded
        """
        ...


class InMemoryCatalog:
    """
    In-memory catalog endpoint for testing and dry runs.

    Statements are recorded, not interpreted. A statement fails when it
    contains one of the configured failure markers.

    Example:
        >>> catalog = InMemoryCatalog()
        >>> catalog.add_database("sales", location="hdfs://prod/warehouse/sales.db")
        >>> catalog.add_table("sales", "orders", definition)
        >>> await catalog.table_exists("sales", "orders")
        True
    """

    def __init__(
        self,
        *,
        fail_on: list[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        """
        Initialize an empty catalog.

        Args:
            fail_on: Substrings that make a statement fail
            delay: Seconds every call sleeps before answering
        """
        self._databases: dict[str, dict[str, Any]] = {}
        self._fail_on = list(fail_on or [])
        self._delay = delay
        self._lock = asyncio.Lock()
        self.executed: list[SqlStatement] = []
        self.last_error: str | None = None

    def add_database(
        self,
        name: str,
        *,
        location: str | None = None,
        managed_location: str | None = None,
        owner: str | None = None,
    ) -> None:
        properties = {
            key: value
            for key, value in (
                ("location", location),
                ("managed_location", managed_location),
                ("owner", owner),
            )
            if value is not None
        }
        self._databases.setdefault(name, {"properties": {}, "tables": {}})
        self._databases[name]["properties"].update(properties)

    def add_table(
        self,
        database: str,
        name: str,
        definition: list[str],
        *,
        partitions: dict[str, str] | None = None,
        owner: str | None = None,
    ) -> None:
        self.add_database(database)
        self._databases[database]["tables"][name] = {
            "definition": list(definition),
            "partitions": dict(partitions or {}),
            "owner": owner,
        }

    async def _pause(self) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)

    def _table(self, database: str, table: str) -> dict[str, Any] | None:
        return self._databases.get(database, {}).get("tables", {}).get(table)

    async def list_tables(self, database: str) -> list[str]:
        await self._pause()
        return sorted(self._databases.get(database, {}).get("tables", {}))

    async def get_database(self, database: str) -> dict[str, str] | None:
        await self._pause()
        entry = self._databases.get(database)
        return dict(entry["properties"]) if entry else None

    async def table_exists(self, database: str, table: str) -> bool:
        await self._pause()
        return self._table(database, table) is not None

    async def get_definition(self, database: str, table: str) -> list[str] | None:
        await self._pause()
        entry = self._table(database, table)
        return list(entry["definition"]) if entry else None

    async def list_partitions(self, database: str, table: str) -> dict[str, str]:
        await self._pause()
        entry = self._table(database, table)
        return dict(entry["partitions"]) if entry else {}

    async def get_owner(self, database: str, table: str) -> str | None:
        await self._pause()
        entry = self._table(database, table)
        return entry["owner"] if entry else None

    async def run_statements(self, statements: list[SqlStatement]) -> bool:
        await self._pause()
        async with self._lock:
            for statement in statements:
                for marker in self._fail_on:
                    if marker in statement.action:
                        self.last_error = f"{statement.description}: {statement.action}"
                        logger.warning("Statement failed: %s", self.last_error)
                        return False
                self.executed.append(statement)
            return True
