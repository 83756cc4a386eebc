"""
Unit tests for the CREATE TABLE helpers.

Tests for:
- Name parsing
- Table kind detection (view, external, managed, ACID, native)
- Properties, locations, partition columns and buckets
- Schema comparison and rendering
"""

import pytest

from hmsmirror import ddl
from hmsmirror.models import TableType
from tests.fixtures import (
    SALES_LOCATION,
    acid_definition,
    external_definition,
    managed_definition,
    table_definition,
    view_definition,
)


class TestNames:
    """Tests for name parsing."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("`sales.orders`", ("sales", "orders")),
            ("`sales`.`orders`", ("sales", "orders")),
            ("sales.orders", ("sales", "orders")),
            ("`orders`", (None, "orders")),
            ("orders", (None, "orders")),
        ],
    )
    def test_split_name(self, name, expected):
        assert ddl.split_name(name) == expected

    def test_table_name(self):
        assert ddl.table_name(external_definition()) == ("sales", "orders")
        assert ddl.table_name(view_definition()) == ("sales", "v_orders")
        assert ddl.table_name(["SELECT 1"]) is None

    def test_create_if_not_exists(self):
        definition = ["CREATE TABLE IF NOT EXISTS `sales.orders`(", "  `id` int)"]
        assert ddl.table_name(definition) == ("sales", "orders")


class TestTableKinds:
    """Tests for table kind detection."""

    def test_external(self):
        definition = external_definition()
        assert ddl.is_external(definition)
        assert not ddl.is_managed(definition)
        assert ddl.table_type(definition) == TableType.EXTERNAL_TABLE

    def test_managed(self):
        definition = managed_definition()
        assert ddl.is_managed(definition)
        assert not ddl.is_acid(definition)
        assert ddl.table_type(definition) == TableType.MANAGED_TABLE

    def test_acid(self):
        definition = acid_definition()
        assert ddl.is_acid(definition)
        assert not ddl.is_insert_only(definition)

    def test_insert_only(self):
        definition = acid_definition(properties={"transactional_properties": "insert_only"})
        assert ddl.is_insert_only(definition)

    def test_view(self):
        definition = view_definition()
        assert ddl.is_view(definition)
        assert not ddl.is_managed(definition)
        assert not ddl.is_external(definition)

    def test_non_native(self):
        definition = external_definition()
        assert ddl.is_hive_native(definition)
        definition.append("STORED BY 'org.apache.hadoop.hive.hbase.HBaseStorageHandler'")
        assert not ddl.is_hive_native(definition)

    def test_external_purge(self):
        purging = external_definition(properties={"external.table.purge": "TRUE"})
        assert ddl.is_external_purge(purging)
        assert not ddl.is_external_purge(external_definition())

    def test_legacy_managed(self):
        definition = external_definition(properties={ddl.LEGACY_MANAGED_FLAG: "true"})
        assert ddl.is_legacy_managed(definition)


class TestProperties:
    """Tests for property, location, partition and bucket lookups."""

    def test_table_properties(self):
        definition = acid_definition()
        assert ddl.get_table_properties(definition) == {
            "transient_lastDdlTime": "1700000000",
            "transactional": "true",
            "transactional_properties": "default",
        }
        assert ddl.get_property(definition, "missing") is None

    def test_no_properties(self):
        assert ddl.get_table_properties(view_definition()) == {}

    def test_location_on_next_line(self):
        assert ddl.get_location(external_definition()) == f"{SALES_LOCATION}/orders"

    def test_location_inline(self):
        definition = ["CREATE TABLE `t`(", "  `id` int)", "LOCATION 'hdfs://prod/t'"]
        assert ddl.get_location(definition) == "hdfs://prod/t"

    def test_missing_location(self):
        assert ddl.get_location(table_definition(location=None)) is None
        assert ddl.location_index(table_definition(location=None)) is None

    def test_partition_columns(self):
        assert ddl.partition_columns(external_definition(partitioned=True)) == ["dt"]
        assert ddl.partition_columns(external_definition()) == []

    def test_multi_column_partitions(self):
        definition = [
            "CREATE TABLE `t`(",
            "  `id` int)",
            "PARTITIONED BY (",
            "  `year` int,",
            "  `month` int)",
            "STORED AS ORC",
        ]
        assert ddl.partition_columns(definition) == ["year", "month"]

    def test_bucket_count(self):
        assert ddl.bucket_count(external_definition(buckets=4)) == 4
        assert ddl.bucket_count(external_definition()) is None


class TestSchemaComparison:
    """Tests for schemas_equal()."""

    def test_ignores_name_location_and_properties(self):
        left = external_definition()
        right = external_definition(
            location="hdfs://dr/elsewhere", properties={"external.table.purge": "true"}
        )
        right[0] = "CREATE EXTERNAL TABLE `orders`("
        assert ddl.schemas_equal(left, right)

    def test_detects_column_changes(self):
        left = external_definition()
        right = external_definition(extra_columns=["`note` string"])
        assert not ddl.schemas_equal(left, right)

    def test_ignores_whitespace_and_case(self):
        left = external_definition()
        right = [line.lower() if line.startswith("ROW FORMAT") else line for line in left]
        right[1] = "      `id`   int,"
        assert ddl.schemas_equal(left, right)


class TestRenderCreate:
    """Tests for render_create()."""

    def test_joins_lines(self):
        definition = ["CREATE TABLE `t`(", "  `id` int)"]
        assert ddl.render_create(definition) == "CREATE TABLE `t`(\n  `id` int)"

    def test_if_not_exists(self):
        definition = ["CREATE EXTERNAL TABLE `t`(", "  `id` int)"]
        rendered = ddl.render_create(definition, if_not_exists=True)
        assert rendered.startswith("CREATE EXTERNAL TABLE IF NOT EXISTS `t`(")

    def test_if_not_exists_not_repeated(self):
        definition = ["CREATE TABLE IF NOT EXISTS `t`(", "  `id` int)"]
        rendered = ddl.render_create(definition, if_not_exists=True)
        assert rendered.count("IF NOT EXISTS") == 1
