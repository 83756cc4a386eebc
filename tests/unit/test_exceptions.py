"""
Unit tests for exceptions module.

Tests all exception types, their messages and their serialized form.
"""

import pytest

from hmsmirror.exceptions import (
    CatalogError,
    CatalogTimeoutError,
    CatalogUnavailableError,
    ConfigurationError,
    InvalidPhaseTransitionError,
    MigrationError,
    MismatchError,
    MissingDataPointError,
    RequiredConfigurationError,
    SchemaRewriteError,
    StrictModeViolationError,
    TableMigrationError,
    WarehouseMapFrozenError,
)


class TestMigrationError:
    """Tests for the base MigrationError."""

    def test_base_exception(self):
        """Test that MigrationError can be raised with message."""
        with pytest.raises(MigrationError) as exc_info:
            raise MigrationError("Test error")
        assert str(exc_info.value) == "Test error"

    def test_context_in_to_dict(self):
        error = MigrationError("failed", database="sales", table="orders")
        assert error.to_dict() == {
            "message": "failed",
            "database": "sales",
            "table": "orders",
            "error_code": "MIGRATION_ERROR",
        }

    def test_is_exception_subclass(self):
        assert issubclass(MigrationError, Exception)


class TestRequiredConfigurationError:
    """Tests for RequiredConfigurationError."""

    def test_lists_every_rule(self):
        error = RequiredConfigurationError(["first rule", "second rule"])

        assert error.errors == ["first rule", "second rule"]
        assert str(error) == "Invalid configuration: first rule; second rule"
        assert error.to_dict()["errors"] == ["first rule", "second rule"]
        assert error.to_dict()["error_code"] == "REQUIRED_CONFIGURATION"

    def test_is_configuration_error(self):
        assert issubclass(RequiredConfigurationError, ConfigurationError)


class TestTableErrors:
    """Tests for the table-scoped errors."""

    @pytest.mark.parametrize(
        "error_class",
        [MismatchError, StrictModeViolationError, MissingDataPointError, SchemaRewriteError],
    )
    def test_are_table_migration_errors(self, error_class):
        assert issubclass(error_class, TableMigrationError)

    def test_strict_mode_violation_message(self):
        error = StrictModeViolationError(
            "hdfs://prod/x", database="sales", table="orders", reason="no GLM entry"
        )

        assert error.location == "hdfs://prod/x"
        assert str(error) == (
            "Strict mode: no confident translation for location hdfs://prod/x (no GLM entry)"
        )
        assert error.to_dict()["table"] == "orders"

    def test_strict_mode_violation_without_reason(self):
        error = StrictModeViolationError("/x")
        assert str(error) == "Strict mode: no confident translation for location /x"


class TestInvalidPhaseTransitionError:
    """Tests for InvalidPhaseTransitionError."""

    def test_error_message_contains_phases(self):
        error = InvalidPhaseTransitionError("ERROR", "STARTED", table="orders")

        assert error.current_phase == "ERROR"
        assert error.target_phase == "STARTED"
        assert str(error) == "Invalid phase transition: ERROR -> STARTED"
        assert error.table == "orders"


class TestWarehouseMapFrozenError:
    """Tests for WarehouseMapFrozenError."""

    def test_names_the_database(self):
        error = WarehouseMapFrozenError("sales")
        assert error.database == "sales"
        assert "sales" in str(error)


class TestCatalogTimeoutError:
    """Tests for CatalogTimeoutError."""

    def test_error_message(self):
        error = CatalogTimeoutError("RIGHT", "table_exists", 0.5, database="sales")

        assert error.environment == "RIGHT"
        assert error.operation == "table_exists"
        assert error.timeout == 0.5
        assert str(error) == "RIGHT catalog call table_exists timed out after 0.5s"

    def test_is_catalog_error(self):
        assert issubclass(CatalogTimeoutError, CatalogError)
        assert issubclass(CatalogError, MigrationError)


class TestCatalogUnavailableError:
    """Tests for CatalogUnavailableError."""

    def test_error_message(self):
        error = CatalogUnavailableError(
            "RIGHT", "table_exists", "metastore down", database="sales", table="orders"
        )

        assert error.environment == "RIGHT"
        assert error.operation == "table_exists"
        assert error.reason == "metastore down"
        assert str(error) == "RIGHT catalog call table_exists failed: metastore down"
        assert error.to_dict()["error_code"] == "CATALOG_UNAVAILABLE"

    def test_is_catalog_error(self):
        assert issubclass(CatalogUnavailableError, CatalogError)
