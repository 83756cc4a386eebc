"""
hmsmirror - Hive metastore migration planning.

This library provides:
- Strategy dispatcher turning per-table facts into SQL plans
- Location translation with a global location map and warehouse plans
- Database-level DDL for the target cluster
- An asyncio run coordinator over pluggable catalog endpoints
- Run snapshots with In-Memory, SQLite and PostgreSQL backends
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("hmsmirror")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Catalog endpoints
from hmsmirror.catalog import CatalogEndpoint, InMemoryCatalog

# Configuration
from hmsmirror.config import (
    ClusterConfig,
    HybridConfig,
    MigrateAcidConfig,
    OwnershipTransferConfig,
    RunConfig,
    RunContext,
    StorageMigrationConfig,
    TransferConfig,
    WarehouseConfig,
    WarehousePlanConfig,
    build_run_context,
    ensure_valid,
    validate_run_config,
)
from hmsmirror.databases import build_database_sql

# Exceptions
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

# Location translation
from hmsmirror.location import (
    GlobalLocationMap,
    LocationTranslator,
    TranslationAudit,
    WarehouseMapBuilder,
    reconcile_warehouse_plans,
)
from hmsmirror.messages import MessageCode

# Core types
from hmsmirror.models import (
    CopySpec,
    CreateStrategy,
    DatabaseUnit,
    DataStrategy,
    Environment,
    EnvironmentTable,
    MigrationUnit,
    PhaseState,
    SqlStatement,
    TableType,
    TranslationLevel,
    TranslationType,
)

# Persistence
from hmsmirror.repositories import (
    DatabaseSnapshot,
    InMemoryRunSnapshotRepository,
    PostgreSQLRunSnapshotRepository,
    RunSnapshotRepository,
    SQLiteRunSnapshotRepository,
    TableSnapshot,
)
from hmsmirror.rewriter import HiveSchemaRewriter, SchemaRewriter
from hmsmirror.runner import MigrationRunner, RunResult

# Strategies
from hmsmirror.strategies import DispatchOutcome, StrategyDispatcher

__all__ = [
    "__version__",
    # Core types
    "Environment",
    "PhaseState",
    "CreateStrategy",
    "DataStrategy",
    "TableType",
    "TranslationLevel",
    "TranslationType",
    "SqlStatement",
    "EnvironmentTable",
    "MigrationUnit",
    "DatabaseUnit",
    "CopySpec",
    "MessageCode",
    # Configuration
    "RunConfig",
    "ClusterConfig",
    "MigrateAcidConfig",
    "HybridConfig",
    "StorageMigrationConfig",
    "TransferConfig",
    "WarehouseConfig",
    "WarehousePlanConfig",
    "OwnershipTransferConfig",
    "RunContext",
    "build_run_context",
    "validate_run_config",
    "ensure_valid",
    # Exceptions
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
    # Catalogs and schema rewriting
    "CatalogEndpoint",
    "InMemoryCatalog",
    "SchemaRewriter",
    "HiveSchemaRewriter",
    # Location translation
    "GlobalLocationMap",
    "WarehouseMapBuilder",
    "LocationTranslator",
    "TranslationAudit",
    "reconcile_warehouse_plans",
    # Planning and running
    "StrategyDispatcher",
    "DispatchOutcome",
    "build_database_sql",
    "MigrationRunner",
    "RunResult",
    # Persistence
    "RunSnapshotRepository",
    "TableSnapshot",
    "DatabaseSnapshot",
    "InMemoryRunSnapshotRepository",
    "SQLiteRunSnapshotRepository",
    "PostgreSQLRunSnapshotRepository",
]
