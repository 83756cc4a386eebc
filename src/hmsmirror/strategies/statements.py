"""HiveQL statement templates and their plan descriptions."""

from __future__ import annotations

USE_DESC = "Selecting DB"
CREATE_DESC = "Creating Table"
CREATE_SHADOW_DESC = "Creating Shadow Table"
CREATE_TRANSFER_DESC = "Creating Transfer Table"
DROP_DESC = "Dropping Table"
DROP_SHADOW_DESC = "Dropping Shadow Table"
DROP_TRANSFER_DESC = "Dropping Transfer Table"
DROP_ARCHIVE_DESC = "Dropping Archive Table"
REPAIR_DESC = "Repairing Table (MSCK)"
ADD_PARTITIONS_DESC = "Adding Partitions"
RENAME_DESC = "Renaming Table to Archive"
OWNER_DESC = "Setting Owner"
EXPORT_DESC = "Export Table"
IMPORT_DESC = "Import Table"
MOVE_DATA_DESC = "Moving data"
DYNAMIC_PARTITION_DESC = "Enabling dynamic partitions"
TEZ_EXECUTION_DESC = "Setting tez as execution engine"
SET_LOCATION_DESC = "Setting Location"
SET_PROPERTY_DESC = "Setting Table Property"
UNSET_PROPERTY_DESC = "Removing Table Property"
CREATE_DATABASE_DESC = "Creating Database"
DATABASE_LOCATION_DESC = "Setting Database Location"
DATABASE_MANAGED_LOCATION_DESC = "Setting Database Managed Location"
DATABASE_OWNER_DESC = "Setting Database Owner"
SKIPPED_DESC = "Skipped"

SET_DYNAMIC_PARTITION = "SET hive.exec.dynamic.partition=true"
SET_DYNAMIC_PARTITION_MODE = "SET hive.exec.dynamic.partition.mode=nonstrict"
SET_TEZ_AS_EXECUTION_ENGINE = "SET hive.execution.engine=tez"


def use(database: str) -> str:
    return f"USE `{database}`"


def drop_table(table: str) -> str:
    return f"DROP TABLE IF EXISTS `{table}`"


def drop_view(view: str) -> str:
    return f"DROP VIEW IF EXISTS `{view}`"


def repair_table(table: str) -> str:
    return f"MSCK REPAIR TABLE `{table}`"


def rename_table(table: str, new_name: str) -> str:
    return f"ALTER TABLE `{table}` RENAME TO `{new_name}`"


def set_owner(table: str, owner: str) -> str:
    return f"ALTER TABLE `{table}` SET OWNER USER `{owner}`"


def export_table(table: str, location: str) -> str:
    return f'EXPORT TABLE `{table}` TO "{location}"'


def import_table(
    table: str, export_location: str, *, external: bool = False, location: str | None = None
) -> str:
    """``IMPORT [EXTERNAL] TABLE t FROM "export" [LOCATION "location"]``"""
    kind = "EXTERNAL TABLE" if external else "TABLE"
    statement = f'IMPORT {kind} `{table}` FROM "{export_location}"'
    if location:
        statement = f'{statement} LOCATION "{location}"'
    return statement


def insert_overwrite(source: str, target: str, partition_columns: list[str] | None = None) -> str:
    """Copy every row of source into target, with dynamic partitions if any."""
    statement = f"FROM `{source}` INSERT OVERWRITE TABLE `{target}`"
    if partition_columns:
        statement = f"{statement} PARTITION ({', '.join(f'`{c}`' for c in partition_columns)})"
    return f"{statement} SELECT *"


def partition_clause(partition_spec: str) -> str:
    """``a=1/b=x`` -> ``a='1', b='x'``"""
    pairs = []
    for part in partition_spec.split("/"):
        key, _, value = part.partition("=")
        pairs.append(f"`{key}`='{value}'")
    return ", ".join(pairs)


def add_partitions(table: str, partitions: str) -> str:
    return f"ALTER TABLE `{table}` ADD IF NOT EXISTS\n{partitions}"


def set_table_location(table: str, location: str) -> str:
    return f'ALTER TABLE `{table}` SET LOCATION "{location}"'


def set_partition_location(table: str, partition_spec: str, location: str) -> str:
    return (
        f"ALTER TABLE `{table}` PARTITION ({partition_clause(partition_spec)}) "
        f'SET LOCATION "{location}"'
    )


def set_table_property(table: str, key: str, value: str) -> str:
    return f"ALTER TABLE `{table}` SET TBLPROPERTIES (\"{key}\"=\"{value}\")"


def unset_table_property(table: str, key: str) -> str:
    return f'ALTER TABLE `{table}` UNSET TBLPROPERTIES ("{key}")'


def create_database(database: str) -> str:
    return f"CREATE DATABASE IF NOT EXISTS `{database}`"


def set_database_location(database: str, location: str) -> str:
    return f'ALTER DATABASE `{database}` SET LOCATION "{location}"'


def set_database_managed_location(database: str, location: str) -> str:
    return f'ALTER DATABASE `{database}` SET MANAGEDLOCATION "{location}"'


def set_database_owner(database: str, owner: str) -> str:
    return f"ALTER DATABASE `{database}` SET OWNER USER `{owner}`"


def comment(text: str) -> str:
    return f"-- {text}"
