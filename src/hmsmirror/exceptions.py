"""
Exceptions for the hmsmirror migration engine.

Exception Hierarchy:
    MigrationError (base)
    +-- ConfigurationError
    |   +-- RequiredConfigurationError
    +-- TableMigrationError
    |   +-- MismatchError
    |   +-- StrictModeViolationError
    |   +-- MissingDataPointError
    |   +-- SchemaRewriteError
    +-- InvalidPhaseTransitionError
    +-- WarehouseMapFrozenError
    +-- CatalogError
        +-- CatalogTimeoutError
        +-- CatalogUnavailableError

Table-scoped errors are caught by the strategy dispatcher and recorded on
the failing table. Configuration errors abort a run before any table is
processed.
"""

from __future__ import annotations

from typing import Any


class MigrationError(Exception):
    """
    Base exception for all migration errors.

    Attributes:
        message: Human-readable error description.
        database: Database involved, if applicable.
        table: Table involved, if applicable.
    """

    error_code: str = "MIGRATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        database: str | None = None,
        table: str | None = None,
    ) -> None:
        self.message = message
        self.database = database
        self.table = table
        super().__init__(message)

    def __str__(self) -> str:
        """Return the message. Context is available through to_dict()."""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "message": self.message,
            "database": self.database,
            "table": self.table,
            "error_code": self.error_code,
        }


class ConfigurationError(MigrationError):
    """Raised when the run configuration cannot be used."""

    error_code = "CONFIGURATION_ERROR"


class RequiredConfigurationError(ConfigurationError):
    """
    Raised before a run starts when configuration rules are violated.

    Attributes:
        errors: Every violated rule, in the order checked.
    """

    error_code = "REQUIRED_CONFIGURATION"

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = list(self.errors)
        return result


class TableMigrationError(MigrationError):
    """Base for errors that fail a single table."""

    error_code = "TABLE_MIGRATION_ERROR"


class MismatchError(TableMigrationError):
    """Raised when a location cannot be aligned with its expected layout."""

    error_code = "LOCATION_MISMATCH"


class StrictModeViolationError(TableMigrationError):
    """
    Raised in strict mode when a location cannot be mapped with confidence.

    Attributes:
        location: The location that could not be reconciled.
    """

    error_code = "STRICT_MODE_VIOLATION"

    def __init__(
        self,
        location: str,
        *,
        database: str | None = None,
        table: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.location = location
        message = f"Strict mode: no confident translation for location {location}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, database=database, table=table)


class MissingDataPointError(TableMigrationError):
    """Raised when a definition or location needed for a decision is missing."""

    error_code = "MISSING_DATA_POINT"


class SchemaRewriteError(TableMigrationError):
    """Raised when a copy specification cannot be applied to a definition."""

    error_code = "SCHEMA_REWRITE"


class InvalidPhaseTransitionError(MigrationError):
    """
    Raised when a table is moved to a phase the state machine forbids.

    Attributes:
        current_phase: Phase the table is in.
        target_phase: Phase that was attempted.
    """

    error_code = "INVALID_PHASE_TRANSITION"

    def __init__(
        self,
        current_phase: str,
        target_phase: str,
        *,
        database: str | None = None,
        table: str | None = None,
    ) -> None:
        self.current_phase = current_phase
        self.target_phase = target_phase
        super().__init__(
            f"Invalid phase transition: {current_phase} -> {target_phase}",
            database=database,
            table=table,
        )


class WarehouseMapFrozenError(MigrationError):
    """Raised when source locations are added after table processing began."""

    error_code = "WAREHOUSE_MAP_FROZEN"

    def __init__(self, database: str) -> None:
        super().__init__(
            f"Source locations are read-only once table processing starts (database {database})",
            database=database,
        )


class CatalogError(MigrationError):
    """Raised when a catalog endpoint call fails."""

    error_code = "CATALOG_ERROR"


class CatalogTimeoutError(CatalogError):
    """
    Raised when a catalog endpoint call exceeds its timeout.

    Attributes:
        environment: Environment name of the endpoint.
        operation: Name of the endpoint call.
        timeout: Timeout in seconds.
    """

    error_code = "CATALOG_TIMEOUT"

    def __init__(
        self,
        environment: str,
        operation: str,
        timeout: float,
        *,
        database: str | None = None,
        table: str | None = None,
    ) -> None:
        self.environment = environment
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"{environment} catalog call {operation} timed out after {timeout}s",
            database=database,
            table=table,
        )


class CatalogUnavailableError(CatalogError):
    """
    Raised when a catalog endpoint call fails with an endpoint exception.

    The original exception is chained as ``__cause__``.

    Attributes:
        environment: Environment name of the endpoint.
        operation: Name of the endpoint call.
        reason: Text of the original exception.
    """

    error_code = "CATALOG_UNAVAILABLE"

    def __init__(
        self,
        environment: str,
        operation: str,
        reason: str,
        *,
        database: str | None = None,
        table: str | None = None,
    ) -> None:
        self.environment = environment
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"{environment} catalog call {operation} failed: {reason}",
            database=database,
            table=table,
        )


__all__ = [
    "MigrationError",
    "ConfigurationError",
    "RequiredConfigurationError",
    "TableMigrationError",
    "MismatchError",
    "StrictModeViolationError",
    "MissingDataPointError",
    "SchemaRewriteError",
    "InvalidPhaseTransitionError",
    "WarehouseMapFrozenError",
    "CatalogError",
    "CatalogTimeoutError",
    "CatalogUnavailableError",
]
