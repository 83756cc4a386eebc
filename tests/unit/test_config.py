"""
Unit tests for the run configuration.

Tests for:
- RunConfig parsing and normalization
- Derived properties (namespaces, database names)
- build_run_context()
- validate_run_config() and ensure_valid()
"""

import pytest
from pydantic import ValidationError

from hmsmirror.config import (
    RunConfig,
    build_run_context,
    ensure_valid,
    validate_run_config,
)
from hmsmirror.exceptions import RequiredConfigurationError
from hmsmirror.models import DataStrategy, Environment, TableType, TranslationType
from tests.conftest import build_config


class TestRunConfig:
    """Tests for parsing a configuration."""

    def test_defaults(self):
        config = RunConfig()

        assert config.data_strategy == DataStrategy.SCHEMA_ONLY
        assert config.hybrid.export_import_partition_limit == 100
        assert config.hybrid.sql_partition_limit == 500
        assert config.migrate_acid.partition_limit == 500
        assert config.migrate_acid.artificial_bucket_threshold == 2
        assert config.transfer.shadow_prefix == "hms_mirror_shadow_"
        assert config.transfer.storage_migration.translation_type == TranslationType.RELATIVE
        assert config.concurrency == 10

    def test_namespaces_lose_trailing_slash(self):
        config = build_config(
            right={"hcfs_namespace": "hdfs://dr/"},
            transfer={"common_storage": "s3a://bucket/", "intermediate_storage": "  "},
        )

        assert config.right.hcfs_namespace == "hdfs://dr"
        assert config.transfer.common_storage == "s3a://bucket"
        assert config.transfer.intermediate_storage is None

    def test_typed_glm_entries(self):
        config = build_config(
            global_location_map={"/wh": {"MANAGED_TABLE": "/new/managed"}},
        )
        assert config.global_location_map["/wh"] == {TableType.MANAGED_TABLE: "/new/managed"}

    def test_is_frozen(self):
        config = build_config()
        with pytest.raises(ValidationError):
            config.sync = True

    @pytest.mark.parametrize("field", ["concurrency", "lookup_timeout"])
    def test_rejects_non_positive_values(self, field):
        with pytest.raises(ValidationError):
            build_config(**{field: 0})

    def test_rejects_unknown_strategy(self):
        with pytest.raises(ValidationError):
            build_config(data_strategy="COPY")


class TestDerivedProperties:
    """Tests for the computed configuration properties."""

    def test_target_namespace_prefers_common_storage(self):
        assert build_config().target_namespace == "hdfs://dr"
        config = build_config(transfer={"common_storage": "s3a://shared"})
        assert config.target_namespace == "s3a://shared"

    def test_storage_options_present(self):
        assert not build_config().storage_options_present
        assert build_config(transfer={"intermediate_storage": "s3a://x"}).storage_options_present

    def test_legacy_migration_and_convert_managed(self):
        config = build_config(left={"legacy_hive": True})
        assert config.legacy_migration
        assert config.convert_managed
        assert not build_config().convert_managed

    def test_resolved_database_with_prefix(self):
        assert build_config(database_prefix="dr_").resolved_database("sales") == "dr_sales"

    def test_resolved_database_with_rename(self):
        config = build_config(database_rename="archive", database_prefix="dr_")
        assert config.resolved_database("sales") == "dr_archive"

    def test_rename_ignored_for_several_databases(self):
        config = build_config(database_rename="archive", databases=["sales", "hr"])
        assert config.resolved_database("hr") == "hr"

    def test_cluster(self):
        config = build_config()
        assert config.cluster(Environment.LEFT) is config.left
        assert config.cluster(Environment.RIGHT) is config.right


class TestBuildRunContext:
    """Tests for build_run_context()."""

    def test_right_target(self):
        config = build_config(left={"legacy_hive": True})

        context = build_run_context(config)

        assert context.left is config.left
        assert context.right is config.right
        assert context.legacy_migration

    def test_left_target_uses_source_twice(self):
        config = build_config(left={"legacy_hive": True})

        context = build_run_context(config, Environment.LEFT)

        assert context.right is config.left
        assert not context.legacy_migration

    def test_flipped(self):
        context = build_run_context(build_config())
        flipped = context.flipped()
        assert flipped.left is context.right
        assert flipped.right is context.left


class TestValidation:
    """Tests for the cross-field rules."""

    def test_base_config_is_valid(self):
        assert validate_run_config(build_config()) == []
        ensure_valid(build_config())

    def test_delegation_only_strategy_is_rejected(self):
        errors = validate_run_config(build_config(data_strategy="INTERMEDIATE"))
        assert len(errors) == 1
        assert "not a valid top level strategy" in errors[0]

    def test_downgrade_of_hive_generation_is_rejected(self):
        errors = validate_run_config(build_config(right={"legacy_hive": True}))
        assert errors == ["Migrations from non-legacy Hive to legacy Hive are not supported."]

    def test_storage_migration_needs_common_storage(self):
        errors = validate_run_config(build_config(data_strategy="STORAGE_MIGRATION"))
        assert len(errors) == 1
        assert "common_storage" in errors[0]

    def test_linked_refuses_storage_options(self):
        config = build_config(
            data_strategy="LINKED",
            transfer={"intermediate_storage": "s3a://x", "common_storage": "s3a://y"},
        )
        assert len(validate_run_config(config)) == 2

    def test_in_place_rules(self):
        config = build_config(
            left={"legacy_hive": True},
            migrate_acid={"enabled": True, "in_place": True},
            transfer={"common_storage": "s3a://y", "storage_migration": {"distcp": True}},
        )

        errors = validate_run_config(config)

        assert "In-place ACID migration requires 'migrate_acid.downgrade'." in errors
        assert "ACID in-place downgrade only works on non-legacy Hive." in errors
        assert "'distcp' is not valid for ACID in-place downgrades." in errors
        assert len(errors) == 4

    def test_acid_only_needs_acid_enabled(self):
        errors = validate_run_config(build_config(migrate_acid={"only": True}))
        assert errors == ["'migrate_acid.only' requires 'migrate_acid.enabled'."]

    def test_rename_needs_single_database(self):
        config = build_config(database_rename="archive", databases=["sales", "hr"])
        assert validate_run_config(config) == [
            "Database rename can only be used with a single database."
        ]

    def test_aligned_needs_warehouse_directories(self):
        config = build_config(transfer={"storage_migration": {"translation_type": "ALIGNED"}})
        assert len(validate_run_config(config)) == 1

        config = build_config(
            transfer={"storage_migration": {"translation_type": "ALIGNED"}},
            warehouse_plans={
                "sales": {"external_directory": "/wh/ext", "managed_directory": "/wh/mngd"}
            },
        )
        assert validate_run_config(config) == []

    def test_right_namespace_required(self):
        config = build_config(right={"hcfs_namespace": None})
        assert len(validate_run_config(config)) == 1
        dump = build_config(right={"hcfs_namespace": None}, data_strategy="DUMP")
        assert validate_run_config(dump) == []

    def test_ensure_valid_raises_with_every_rule(self):
        config = build_config(data_strategy="ACID", migrate_acid={"only": True})

        with pytest.raises(RequiredConfigurationError) as exc_info:
            ensure_valid(config)

        assert len(exc_info.value.errors) == 2
