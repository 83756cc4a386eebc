"""
Unit tests for location path arithmetic.

Tests for:
- Namespace extraction and stripping
- Reducing URLs by a consolidation level
- Segment-boundary aware sub-path checks
"""

import pytest

from hmsmirror.location import (
    get_namespace,
    is_sub_path,
    partition_depth,
    reduce_url_by,
    strip_namespace,
)


class TestNamespace:
    """Tests for get_namespace and strip_namespace."""

    def test_get_namespace_of_full_url(self):
        assert get_namespace("hdfs://prod/data/sales.db") == "hdfs://prod"

    def test_get_namespace_with_port(self):
        assert get_namespace("s3a://bucket:9000/data") == "s3a://bucket:9000"

    def test_get_namespace_of_bare_path(self):
        assert get_namespace("/data/sales.db") is None

    def test_strip_namespace(self):
        assert strip_namespace("hdfs://prod/data/sales.db/orders") == "/data/sales.db/orders"

    def test_strip_namespace_of_bare_path_is_identity(self):
        assert strip_namespace("/data/sales.db") == "/data/sales.db"

    def test_strip_namespace_of_namespace_only(self):
        """A namespace without a path is the root."""
        assert strip_namespace("hdfs://prod") == "/"


class TestReduceUrlBy:
    """Tests for reduce_url_by."""

    def test_reduce_by_one(self):
        assert reduce_url_by("/w/db.db/tbl/part=1", 1) == "/w/db.db/tbl"

    def test_reduce_keeps_namespace(self):
        assert reduce_url_by("hdfs://prod/data/sales.db/orders", 1) == "hdfs://prod/data/sales.db"

    def test_reduce_past_root(self):
        """Reducing by more segments than exist yields the namespace root."""
        assert reduce_url_by("hdfs://ns/w/db.db/tbl", 5) == "hdfs://ns/"

    def test_reduce_by_zero_drops_trailing_slash(self):
        assert reduce_url_by("hdfs://ns/a/b/", 0) == "hdfs://ns/a/b"

    def test_negative_level_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            reduce_url_by("/a/b", -1)


class TestPartitionDepth:
    """Tests for partition_depth."""

    def test_single_level(self):
        assert partition_depth("dt=2024-01-01") == 1

    def test_multi_level(self):
        assert partition_depth("dt=2024-01-01/hr=02") == 2


class TestIsSubPath:
    """Tests for is_sub_path."""

    def test_equal_paths(self):
        assert is_sub_path("/a/b", "/a/b")

    def test_child_path(self):
        assert is_sub_path("/a/b/c", "/a/b")

    def test_sibling_with_common_prefix_is_not_a_child(self):
        """Matching respects segment boundaries."""
        assert not is_sub_path("/a/bc", "/a/b")

    def test_parent_with_trailing_slash(self):
        assert is_sub_path("/a/b", "/a/b/")

    def test_root_covers_everything(self):
        assert is_sub_path("/x/y", "/")
