"""
Run configuration.

The configuration is a tree of frozen pydantic models. Building one from a
mapping validates field types and ranges; `ensure_valid` then checks the
cross-field rules that would make a run fail before any table is touched.

Example:
    >>> config = RunConfig.model_validate({
    ...     "data_strategy": "HYBRID",
    ...     "databases": ["sales"],
    ...     "left": {"legacy_hive": True, "hcfs_namespace": "hdfs://old"},
    ...     "right": {"hcfs_namespace": "hdfs://new"},
    ...     "migrate_acid": {"enabled": True},
    ... })
    >>> ensure_valid(config)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hmsmirror.exceptions import RequiredConfigurationError
from hmsmirror.models import DataStrategy, Environment, TableType, TranslationType

logger = logging.getLogger(__name__)


def _strip_trailing_slash(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    return value.rstrip("/") or "/"


class ClusterConfig(BaseModel):
    """Settings of one catalog endpoint."""

    model_config = ConfigDict(frozen=True)

    legacy_hive: bool = Field(
        default=False,
        description="Endpoint runs a legacy (pre-ACIDv2) Hive generation",
    )
    hcfs_namespace: str | None = Field(
        default=None,
        description="Filesystem namespace, e.g. hdfs://cluster",
    )
    create_if_not_exists: bool = Field(
        default=False,
        description="Emit CREATE ... IF NOT EXISTS for tables on this endpoint",
    )

    @field_validator("hcfs_namespace")
    @classmethod
    def normalize_namespace(cls, value: str | None) -> str | None:
        return _strip_trailing_slash(value)


class MigrateAcidConfig(BaseModel):
    """Handling of transactional tables."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Migrate ACID tables")
    only: bool = Field(default=False, description="Only migrate ACID tables")
    downgrade: bool = Field(default=False, description="Downgrade ACID tables to external")
    in_place: bool = Field(default=False, description="Downgrade on the source cluster itself")
    partition_limit: int = Field(
        default=500,
        ge=0,
        description="Partition count above which an in-place SQL downgrade is refused",
    )
    artificial_bucket_threshold: int = Field(
        default=2,
        ge=0,
        description="Bucket definitions at or below this count are removed on downgrade",
    )


class HybridConfig(BaseModel):
    """Thresholds used to choose between EXPORT_IMPORT and SQL."""

    model_config = ConfigDict(frozen=True)

    export_import_partition_limit: int = Field(
        default=100,
        description="Partition limit for EXPORT_IMPORT; zero or less means no limit",
    )
    sql_partition_limit: int = Field(
        default=500,
        description="Partition limit for SQL based transfers",
    )
    sql_size_limit: int = Field(
        default=1024 * 1024 * 1024,
        ge=0,
        description="Table size (bytes) above which SQL transfers are discouraged",
    )


class StorageMigrationConfig(BaseModel):
    """How locations are rewritten when data is relocated."""

    model_config = ConfigDict(frozen=True)

    translation_type: TranslationType = Field(
        default=TranslationType.RELATIVE,
        description="RELATIVE keeps the path shape; ALIGNED uses warehouse directories",
    )
    distcp: bool = Field(default=False, description="Data is moved separately with distcp")
    consolidate_tables_for_distcp: bool = Field(
        default=False,
        description="Record translations at database level for distcp planning",
    )


class WarehouseConfig(BaseModel):
    """Default warehouse directories, used when a database has no plan."""

    model_config = ConfigDict(frozen=True)

    external_directory: str | None = None
    managed_directory: str | None = None

    @field_validator("external_directory", "managed_directory")
    @classmethod
    def normalize_paths(cls, value: str | None) -> str | None:
        return _strip_trailing_slash(value)


class WarehousePlanConfig(BaseModel):
    """Desired base directories of one database, without the database name."""

    model_config = ConfigDict(frozen=True)

    external_directory: str
    managed_directory: str

    @field_validator("external_directory", "managed_directory")
    @classmethod
    def normalize_paths(cls, value: str | None) -> str | None:
        return _strip_trailing_slash(value)


class TransferConfig(BaseModel):
    """Data movement settings."""

    model_config = ConfigDict(frozen=True)

    intermediate_storage: str | None = Field(
        default=None,
        description="Neutral storage data is staged through",
    )
    common_storage: str | None = Field(
        default=None,
        description="Storage shared by both clusters; also the target namespace",
    )
    shadow_prefix: str = "hms_mirror_shadow_"
    transfer_prefix: str = "hms_mirror_transfer_"
    export_base_dir_prefix: str = "/apps/hive/warehouse/export_"
    remote_working_directory: str = "hms_mirror_remote_working_dir"
    storage_migration: StorageMigrationConfig = Field(default_factory=StorageMigrationConfig)
    warehouse: WarehouseConfig = Field(default_factory=WarehouseConfig)

    @field_validator("intermediate_storage", "common_storage")
    @classmethod
    def normalize_paths(cls, value: str | None) -> str | None:
        return _strip_trailing_slash(value)


class OwnershipTransferConfig(BaseModel):
    """Whether owners are carried to the target."""

    model_config = ConfigDict(frozen=True)

    database: bool = False
    table: bool = False


class RunConfig(BaseModel):
    """
    Configuration of one migration run.

    Attributes:
        data_strategy: Top-level strategy applied to every table.
        left: Source endpoint settings.
        right: Target endpoint settings.
        databases: Databases to migrate.
        database_prefix: Prefix added to target database names.
        database_rename: New name when a single database is migrated.
        migrate_acid: Transactional table handling.
        hybrid: EXPORT_IMPORT/SQL thresholds.
        transfer: Data movement settings.
        ownership_transfer: Owner propagation.
        read_only: Target tables never own their data.
        no_purge: Target tables never purge their data.
        sync: Keep the target in line with the source (drop/replace).
        execute: Run the SQL plans against the endpoints.
        save_working_tables: Keep shadow/transfer/archive tables.
        strict_mode: Refuse locations that cannot be mapped with confidence.
        reset_to_default_location: Place tables under the warehouse directories.
        force_external_location: Always IMPORT with an explicit LOCATION.
        global_location_map: Source prefix -> target prefix (optionally per table type).
        warehouse_plans: Database -> desired external/managed directories.
        consolidation_level_base: Segments dropped from a table path to reach its base.
        partition_level_mismatch: Treat relocated partitions as independent bases.
        concurrency: Size of the table worker pool.
        lookup_timeout: Timeout (seconds) for each catalog endpoint call.
    """

    model_config = ConfigDict(frozen=True)

    data_strategy: DataStrategy = DataStrategy.SCHEMA_ONLY
    left: ClusterConfig = Field(default_factory=ClusterConfig)
    right: ClusterConfig = Field(default_factory=ClusterConfig)
    databases: list[str] = Field(default_factory=list)
    database_prefix: str | None = None
    database_rename: str | None = None
    migrate_acid: MigrateAcidConfig = Field(default_factory=MigrateAcidConfig)
    hybrid: HybridConfig = Field(default_factory=HybridConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    ownership_transfer: OwnershipTransferConfig = Field(default_factory=OwnershipTransferConfig)
    read_only: bool = False
    no_purge: bool = False
    sync: bool = False
    execute: bool = False
    save_working_tables: bool = False
    strict_mode: bool = False
    reset_to_default_location: bool = False
    force_external_location: bool = False
    global_location_map: dict[str, str | dict[TableType, str]] = Field(default_factory=dict)
    warehouse_plans: dict[str, WarehousePlanConfig] = Field(default_factory=dict)
    consolidation_level_base: int = Field(default=1, ge=0)
    partition_level_mismatch: bool = False
    concurrency: int = Field(default=10, ge=1)
    lookup_timeout: float = Field(default=30.0, gt=0)

    def cluster(self, environment: Environment) -> ClusterConfig:
        """Get the endpoint settings for LEFT or RIGHT."""
        if environment == Environment.LEFT:
            return self.left
        return self.right

    @property
    def legacy_migration(self) -> bool:
        """Source and target run different Hive generations."""
        return self.left.legacy_hive != self.right.legacy_hive

    @property
    def convert_managed(self) -> bool:
        """Legacy managed tables become external tables on the target."""
        return self.left.legacy_hive and not self.right.legacy_hive

    @property
    def target_namespace(self) -> str | None:
        """Namespace new locations are placed under."""
        return self.transfer.common_storage or self.right.hcfs_namespace

    @property
    def storage_options_present(self) -> bool:
        """Intermediate or common storage is configured."""
        return bool(self.transfer.intermediate_storage or self.transfer.common_storage)

    def resolved_database(self, name: str) -> str:
        """Name of a source database on the target."""
        resolved = name
        if self.database_rename and len(self.databases) <= 1:
            resolved = self.database_rename
        if self.database_prefix:
            resolved = f"{self.database_prefix}{resolved}"
        return resolved


@dataclass(frozen=True)
class RunContext:
    """
    LEFT/RIGHT view of the endpoints used by the strategy handlers.

    Strategies that write back to the source (DUMP, STORAGE_MIGRATION) use a
    context whose right side is the left endpoint.
    """

    left: ClusterConfig
    right: ClusterConfig

    @property
    def legacy_migration(self) -> bool:
        return self.left.legacy_hive != self.right.legacy_hive

    def flipped(self) -> RunContext:
        return RunContext(left=self.right, right=self.left)


def build_run_context(config: RunConfig, target: Environment = Environment.RIGHT) -> RunContext:
    """
    Build the endpoint view for a target environment.

    Args:
        config: Run configuration.
        target: LEFT when the plan is applied to the source itself.

    Returns:
        A new RunContext. The configuration is not copied or modified.
    """
    if target == Environment.LEFT:
        return RunContext(left=config.left, right=config.left)
    return RunContext(left=config.left, right=config.right)


def validate_run_config(config: RunConfig) -> list[str]:
    """
    Check the cross-field rules of a configuration.

    Returns:
        Every violated rule, empty when the configuration is usable.
    """
    errors: list[str] = []
    strategy = config.data_strategy

    if not strategy.is_top_level:
        errors.append(
            f"The {strategy.value} strategy is not a valid top level strategy. Use HYBRID or SQL "
            "along with 'migrate_acid' to address ACID tables."
        )
    if config.right.legacy_hive and not config.left.legacy_hive:
        errors.append("Migrations from non-legacy Hive to legacy Hive are not supported.")
    if strategy == DataStrategy.STORAGE_MIGRATION and not config.transfer.common_storage:
        errors.append(
            "STORAGE_MIGRATION requires 'transfer.common_storage' to define the new namespace."
        )
    if strategy in (DataStrategy.LINKED, DataStrategy.CONVERT_LINKED):
        if config.transfer.intermediate_storage:
            errors.append(
                "Intermediate storage is not a valid option for the LINKED data strategy."
            )
        if config.transfer.common_storage:
            errors.append("Common storage is not a valid option for the LINKED data strategy.")
    if config.migrate_acid.in_place:
        if not config.migrate_acid.downgrade:
            errors.append("In-place ACID migration requires 'migrate_acid.downgrade'.")
        if config.left.legacy_hive:
            errors.append("ACID in-place downgrade only works on non-legacy Hive.")
        if config.storage_options_present:
            errors.append(
                "Intermediate or common storage can't be used with ACID in-place downgrades."
            )
        if config.transfer.storage_migration.distcp:
            errors.append("'distcp' is not valid for ACID in-place downgrades.")
    if config.migrate_acid.only and not config.migrate_acid.enabled:
        errors.append("'migrate_acid.only' requires 'migrate_acid.enabled'.")
    if config.database_rename and len(config.databases) > 1:
        errors.append("Database rename can only be used with a single database.")
    if (
        config.transfer.storage_migration.translation_type == TranslationType.ALIGNED
        and not config.warehouse_plans
        and not (
            config.transfer.warehouse.external_directory
            and config.transfer.warehouse.managed_directory
        )
    ):
        errors.append(
            "ALIGNED translations need warehouse directories or a warehouse plan for each database."
        )
    if not config.right.hcfs_namespace and strategy not in (
        DataStrategy.DUMP,
        DataStrategy.STORAGE_MIGRATION,
    ):
        if not config.transfer.common_storage:
            errors.append(f"The RIGHT namespace is required for the {strategy.value} strategy.")
    return errors


def ensure_valid(config: RunConfig) -> None:
    """
    Raise if the configuration cannot be used for a run.

    Raises:
        RequiredConfigurationError: With every violated rule.
    """
    errors = validate_run_config(config)
    if errors:
        for error in errors:
            logger.error("Configuration: %s", error)
        raise RequiredConfigurationError(errors)
