"""
Warehouse plans and observed source locations.

While databases are scanned the builder collects the base directories that
hold each database's tables and partitions, reduced to a consolidation level.
Once table processing starts the collected sources are frozen; they can only
be rebuilt through an explicit clear.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from hmsmirror.exceptions import WarehouseMapFrozenError
from hmsmirror.location.consolidator import is_sub_path, partition_depth, reduce_url_by
from hmsmirror.models import TableType
from hmsmirror.observability import ATTR_DATABASE, ATTR_LOCATION, Tracer, create_tracer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Warehouse:
    """Desired external and managed directories of a database."""

    external_directory: str
    managed_directory: str

    def directory_for(self, table_type: TableType) -> str:
        if table_type == TableType.MANAGED_TABLE:
            return self.managed_directory
        return self.external_directory

    def to_dict(self) -> dict[str, str]:
        return {
            "external_directory": self.external_directory,
            "managed_directory": self.managed_directory,
        }


@dataclass
class SourceLocationMap:
    """
    Observed base locations of one database.

    Attributes:
        locations: table type -> reduced location -> tables stored below it.
    """

    locations: dict[TableType, dict[str, set[str]]] = field(default_factory=dict)

    def add_table_location(self, table: str, table_type: TableType, location: str) -> None:
        self.locations.setdefault(table_type, {}).setdefault(location, set()).add(table)

    def tables_at(self, table_type: TableType, location: str) -> set[str]:
        return set(self.locations.get(table_type, {}).get(location, set()))

    def all_locations(self) -> list[tuple[TableType, str]]:
        return [
            (table_type, location)
            for table_type, by_location in self.locations.items()
            for location in sorted(by_location)
        ]

    def to_dict(self) -> dict[str, dict[str, list[str]]]:
        return {
            table_type.value: {loc: sorted(tables) for loc, tables in by_location.items()}
            for table_type, by_location in self.locations.items()
        }


class WarehouseMapBuilder:
    """
    Collects source locations and per-database warehouse plans.

    Example:
        >>> builder = WarehouseMapBuilder()
        >>> builder.add_table_source("sales", "orders", TableType.EXTERNAL_TABLE,
        ...                          "hdfs://prod/data/sales.db/orders")
        'hdfs://prod/data/sales.db'
        >>> builder.freeze()
    """

    def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._sources: dict[str, SourceLocationMap] = {}
        self._plans: dict[str, Warehouse] = {}
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the collected sources read-only."""
        with self._lock:
            self._frozen = True

    @property
    def sources(self) -> dict[str, SourceLocationMap]:
        with self._lock:
            return dict(self._sources)

    def get_sources(self, database: str) -> SourceLocationMap | None:
        with self._lock:
            return self._sources.get(database)

    def add_table_source(
        self,
        database: str,
        table: str,
        table_type: TableType | str,
        table_location: str,
        consolidation_level: int = 1,
    ) -> str | None:
        """
        Record the base directory of a table.

        Returns:
            The reduced location that was recorded, None if ignored
        """
        return self.add_source_location(
            database, table, table_type, None, table_location, None, consolidation_level
        )

    def add_partition_source(
        self,
        database: str,
        table: str,
        table_type: TableType | str,
        partition_spec: str,
        table_location: str,
        partition_location: str,
        consolidation_level: int = 1,
        partition_level_mismatch: bool = False,
    ) -> str | None:
        """Record the base directory of a partition stored outside its table."""
        return self.add_source_location(
            database,
            table,
            table_type,
            partition_spec,
            table_location,
            partition_location,
            consolidation_level,
            partition_level_mismatch,
        )

    def add_source_location(
        self,
        database: str,
        table: str,
        table_type: TableType | str,
        partition_spec: str | None,
        table_location: str,
        partition_location: str | None,
        consolidation_level: int = 1,
        partition_level_mismatch: bool = False,
    ) -> str | None:
        """
        Record a source location, reduced to its consolidation base.

        A partition stored below its table's location adds nothing, the
        table call already covered it. A relocated partition is reduced by
        the consolidation level alone when partition level mismatches are
        tolerated, otherwise by its depth plus the level.

        Args:
            database: Source database name
            table: Table name
            table_type: MANAGED_TABLE or EXTERNAL_TABLE; anything else is ignored
            partition_spec: Partition spec, None for a table call
            table_location: Table location
            partition_location: Partition location, None for a table call
            consolidation_level: Segments to drop to reach the base
            partition_level_mismatch: Treat relocated partitions as independent bases

        Returns:
            The recorded base location, or None when nothing was recorded

        Raises:
            WarehouseMapFrozenError: If the builder is frozen
        """
        if self._frozen:
            raise WarehouseMapFrozenError(database)
        parsed = TableType.parse(table_type)
        if parsed is None:
            logger.warning(
                "Ignoring location of %s.%s with unsupported table type %s",
                database,
                table,
                table_type,
            )
            return None

        with self._tracer.span(
            "hmsmirror.warehouse.add_source_location",
            {ATTR_DATABASE: database, ATTR_LOCATION: partition_location or table_location},
        ):
            if partition_spec is None or partition_location is None:
                reduced = reduce_url_by(table_location, consolidation_level)
            elif is_sub_path(partition_location, table_location):
                return None
            elif partition_level_mismatch:
                reduced = reduce_url_by(partition_location, consolidation_level)
            else:
                reduced = reduce_url_by(
                    partition_location, partition_depth(partition_spec) + consolidation_level
                )

            with self._lock:
                if self._frozen:
                    raise WarehouseMapFrozenError(database)
                self._sources.setdefault(database, SourceLocationMap()).add_table_location(
                    table, parsed, reduced
                )
            logger.debug("Source base %s recorded for %s.%s", reduced, database, table)
            return reduced

    def clear_sources(self) -> None:
        """Drop every collected source and allow collection again."""
        with self._lock:
            self._sources.clear()
            self._frozen = False

    def add_warehouse_plan(
        self, database: str, external_directory: str, managed_directory: str
    ) -> Warehouse | None:
        """
        Set the warehouse plan of a database.

        Returns:
            The plan it replaced, if any
        """
        plan = Warehouse(external_directory.rstrip("/"), managed_directory.rstrip("/"))
        with self._lock:
            previous = self._plans.get(database)
            self._plans[database] = plan
        logger.info(
            "Warehouse plan for %s: external=%s managed=%s",
            database,
            plan.external_directory,
            plan.managed_directory,
        )
        return previous

    def remove_warehouse_plan(self, database: str) -> Warehouse | None:
        with self._lock:
            return self._plans.pop(database, None)

    def get_warehouse_plan(self, database: str) -> Warehouse | None:
        with self._lock:
            return self._plans.get(database)

    @property
    def warehouse_plans(self) -> dict[str, Warehouse]:
        with self._lock:
            return dict(self._plans)

    def clear_warehouse_plans(self) -> None:
        with self._lock:
            self._plans.clear()

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "frozen": self._frozen,
                "sources": {db: src.to_dict() for db, src in self._sources.items()},
                "warehouse_plans": {db: plan.to_dict() for db, plan in self._plans.items()},
            }
