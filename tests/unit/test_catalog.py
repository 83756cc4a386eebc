"""
Unit tests for the in-memory catalog endpoint.

Tests for:
- Protocol conformance
- Database and table lookups
- Statement execution and failure markers
- Response delay
"""

import asyncio

import pytest

from hmsmirror.catalog import CatalogEndpoint, InMemoryCatalog
from hmsmirror.models import SqlStatement
from tests.fixtures import external_definition


@pytest.fixture
def catalog() -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    catalog.add_database("sales", location="hdfs://prod/data/sales.db", owner="etl")
    catalog.add_table(
        "sales",
        "orders",
        external_definition(partitioned=True),
        partitions={"dt=2024-01-01": "hdfs://prod/data/sales.db/orders/dt=2024-01-01"},
        owner="alice",
    )
    return catalog


class TestProtocol:
    def test_implements_protocol(self):
        assert isinstance(InMemoryCatalog(), CatalogEndpoint)


class TestLookups:
    """Tests for database and table lookups."""

    async def test_get_database(self, catalog):
        assert await catalog.get_database("sales") == {
            "location": "hdfs://prod/data/sales.db",
            "owner": "etl",
        }
        assert await catalog.get_database("missing") is None

    async def test_add_database_merges_properties(self, catalog):
        catalog.add_database("sales", managed_location="hdfs://prod/managed/sales.db")
        properties = await catalog.get_database("sales")
        assert properties["managed_location"] == "hdfs://prod/managed/sales.db"
        assert properties["owner"] == "etl"

    async def test_add_table_creates_database(self):
        catalog = InMemoryCatalog()
        catalog.add_table("hr", "staff", external_definition("staff", database="hr"))
        assert await catalog.get_database("hr") == {}
        assert await catalog.list_tables("hr") == ["staff"]

    async def test_list_tables_sorted(self, catalog):
        catalog.add_table("sales", "customers", external_definition("customers"))
        assert await catalog.list_tables("sales") == ["customers", "orders"]
        assert await catalog.list_tables("missing") == []

    async def test_table_lookups(self, catalog):
        assert await catalog.table_exists("sales", "orders")
        assert not await catalog.table_exists("sales", "missing")
        assert await catalog.get_definition("sales", "orders") == external_definition(
            partitioned=True
        )
        assert await catalog.get_owner("sales", "orders") == "alice"
        assert list(await catalog.list_partitions("sales", "orders")) == ["dt=2024-01-01"]

    async def test_missing_table_lookups(self, catalog):
        assert await catalog.get_definition("sales", "missing") is None
        assert await catalog.get_owner("sales", "missing") is None
        assert await catalog.list_partitions("sales", "missing") == {}

    async def test_definition_is_a_copy(self, catalog):
        definition = await catalog.get_definition("sales", "orders")
        definition.append("-- changed")
        assert await catalog.get_definition("sales", "orders") == external_definition(
            partitioned=True
        )


class TestStatements:
    """Tests for run_statements()."""

    async def test_records_statements(self, catalog):
        statements = [
            SqlStatement("Selecting DB", "USE `sales`"),
            SqlStatement("Creating Table", "CREATE TABLE `t`(`id` int)"),
        ]
        assert await catalog.run_statements(statements)
        assert catalog.executed == statements
        assert catalog.last_error is None

    async def test_stops_at_first_failure(self):
        catalog = InMemoryCatalog(fail_on=["DROP"])
        statements = [
            SqlStatement("Selecting DB", "USE `sales`"),
            SqlStatement("Dropping Table", "DROP TABLE IF EXISTS `t`"),
            SqlStatement("Creating Table", "CREATE TABLE `t`(`id` int)"),
        ]
        assert not await catalog.run_statements(statements)
        assert [s.action for s in catalog.executed] == ["USE `sales`"]
        assert catalog.last_error == "Dropping Table: DROP TABLE IF EXISTS `t`"

    async def test_empty_batch(self, catalog):
        assert await catalog.run_statements([])


class TestDelay:
    async def test_delay_can_time_out(self):
        catalog = InMemoryCatalog(delay=0.5)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(catalog.list_tables("sales"), 0.01)
