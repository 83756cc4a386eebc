"""
Issue and error texts recorded on tables and databases.

Each member carries a stable numeric code and a ``str.format`` template
with positional fields.

Example:
    >>> MessageCode.HYBRID_EXPORT_IMPORT_LIMIT.format(600, 500)
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class MessageCode(Enum):
    """Message templates keyed by a stable code."""

    ACID_NOT_ON = (
        1,
        "ACID table migration is disabled. Enable 'migrate_acid' to process transactional tables.",
    )
    HYBRID_EXPORT_IMPORT_LIMIT = (
        2,
        "The number of partitions: {0} exceeds the EXPORT_IMPORT partition limit "
        "(hybrid->export_import_partition_limit) of {1}. Hence, the SQL method has been "
        "selected for the migration.",
    )
    ACID_DOWNGRADE_SQL_LIMIT = (
        3,
        "The number of partitions: {0} exceeds both the EXPORT_IMPORT limit of {1} and the "
        "SQL partition limit (hybrid->sql_partition_limit) of {2}. The SQL downgrade will be "
        "attempted on a best effort basis.",
    )
    EXPORT_IMPORT_PARTITION_LIMIT = (
        4,
        "The number of partitions: {0} exceeds the configuration limit "
        "(hybrid->export_import_partition_limit) of {1}. This value is used to abort "
        "migrations that have a high potential for failure. The migration will need to be "
        "done manually OR try increasing the limit.",
    )
    ACID_IN_PLACE_PARTITION_LIMIT = (
        5,
        "The number of partitions: {0} exceeds the ACID partition limit "
        "(migrate_acid->partition_limit) of {1}. The in-place downgrade will not be run.",
    )
    SQL_SYNC_WITH_CREATE_IF_NOT_EXISTS = (
        10,
        "Schema exists on both sides. 'sync' with 'create_if_not_exists' will issue a "
        "CREATE IF NOT EXISTS.",
    )
    SCHEMA_EXISTS_NO_ACTION = (
        11,
        "Schema exists already, no action. If you wish to rebuild the schema, drop it first "
        "and try again.",
    )
    SCHEMA_EXISTS_TARGET_MISMATCH = (
        12,
        "Schema exists on the target, but not on the source.",
    )
    SCHEMA_WILL_BE_CREATED = (13, "Schema will be created")
    SCHEMA_EXISTS_SYNC_ACID = (
        14,
        "Schema exists and 'sync' is set. The ACID table will be REPLACED.",
    )
    SCHEMA_EXISTS_SYNC_MATCH = (15, "Schema exists and matches the source. No action needed.")
    SCHEMA_EXISTS_SYNC_REPLACE = (
        16,
        "Schema exists AND DOESN'T match. It will be REPLACED (DROPPED and RECREATED).",
    )
    SCHEMA_EXISTS_SYNC_PURGE = (
        17,
        "Schema exists AND DOESN'T match. But the target table has the PURGE option set and "
        "can NOT be replaced without compromising the data. No action will be taken.",
    )
    SCHEMA_EXISTS_SYNC_DROP = (18, "Schema doesn't exist in the source. Will be DROPPED.")
    SOURCE_TABLE_MISSING = (19, "Table does not exist on the source.")
    ACID_NOT_LINKABLE = (20, "You can't 'LINK' ACID tables.")
    NON_NATIVE_NOT_SUPPORTED = (21, "Can't process non-native tables with {0}.")
    EXPORT_IMPORT_ACID_LEGACY = (
        22,
        "ACID table EXPORTs are NOT compatible for IMPORT to clusters on a different major "
        "version of Hive.",
    )
    ALIGNED_LOCATION_MISMATCH = (
        23,
        "Translated location {0} does not match the default location {1}. Set "
        "'force_external_location' to IMPORT with an explicit location.",
    )
    ACID_SCHEMA_ONLY = (
        24,
        "The ACID table schema is migrated without data. Use the SQL or HYBRID strategy to "
        "move transactional data.",
    )
    VIEW_SCHEMA_ONLY = (25, "Views carry no data; migrated with SCHEMA_ONLY.")
    CONVERT_LINKED_MISSING = (
        26,
        "Table doesn't exist on the target. Converted to SCHEMA_ONLY.",
    )
    CONVERT_LINKED_PARTITIONED = (
        27,
        "Table is partitioned. The target table will be dropped and recreated with SCHEMA_ONLY.",
    )
    ACID_NOT_ELIGIBLE = (28, "ACID tables are not eligible for {0}.")
    STORAGE_MIGRATION_DISTCP = (
        29,
        "Data must be copied with distcp before the new locations are used.",
    )
    ACID_ONLY_SKIPPED = (
        30,
        "Only ACID tables are processed ('migrate_acid.only'); this table was skipped.",
    )
    VIEW_NOT_RELOCATED = (31, "Views have no storage location; nothing to relocate.")
    STRATEGY_CYCLE = (32, "Strategy {0} was already applied to this table ({1}).")
    NOT_ACID = (33, "{0} only applies to ACID tables.")
    GLM_APPLIED = (40, "GLM applied. Original Location: {0} Mapped Location: {1}")
    NO_GLM_MATCH = (
        41,
        "No GLM entry matched location {0}; kept its relative path on the target ({1}).",
    )
    PARTITION_LOCATION_MISALIGNED = (
        42,
        "Location Mapping can't be determined. No matching GLM entry to make translation. "
        "Original Location: {0} which doesn't align with the original table location {1} "
        "and ALIGNED with DISTCP can't be determined.",
    )
    LOCATION_NOT_FOUND = (43, "No LOCATION found in the definition of {0}.")
    INVALID_PARTITION_LOCATION = (44, "Invalid partition location found for spec: {0}")
    NO_WAREHOUSE_PLAN = (45, "No warehouse plan for database {0}; location {1} is not reconciled.")
    DATABASE_NOT_FOUND = (46, "Database {0} was not found on the source.")
    DATABASE_DDL_FAILED = (47, "Database SQL failed on {0}; table SQL was not executed.")
    CLEANUP_FAILED = (60, "Cleanup SQL failed: {0}")
    ENDPOINT_UNAVAILABLE = (
        61,
        "{0} catalog could not be queried ({1}); treating {2} as absent.",
    )
    EXECUTION_FAILED = (62, "{0} SQL failed: {1}")
    HANDLER_FAILED = (63, "{0} failed: {1}")

    def __init__(self, code: int, template: str) -> None:
        self.code = code
        self.template = template

    def format(self, *args: Any) -> str:
        """Render the message with positional arguments."""
        return self.template.format(*args)
