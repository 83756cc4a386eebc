"""Serializable fact record of one table, read by the strategy decisions."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from hmsmirror import ddl
from hmsmirror.models import Environment, MigrationUnit


@dataclass(frozen=True)
class TableFacts:
    """
    What the strategy cascade knows about a table.

    Built from the scanned LEFT and RIGHT environments. A RIGHT environment
    that could not be queried counts as absent.
    """

    acid: bool = False
    view: bool = False
    managed: bool = False
    external: bool = False
    native: bool = True
    legacy_managed: bool = False
    partitioned: bool = False
    partition_count: int = 0
    left_exists: bool = True
    right_exists: bool = False
    right_external_purge: bool = False

    @classmethod
    def from_unit(cls, unit: MigrationUnit) -> TableFacts:
        left = unit.env(Environment.LEFT)
        right = unit.env(Environment.RIGHT)
        definition = left.definition
        right_exists = right.exists and right.known
        return cls(
            acid=bool(definition) and ddl.is_acid(definition),
            view=bool(definition) and ddl.is_view(definition),
            managed=bool(definition) and ddl.is_managed(definition),
            external=bool(definition) and ddl.is_external(definition),
            native=not definition or ddl.is_hive_native(definition),
            legacy_managed=bool(definition) and ddl.is_legacy_managed(definition),
            partitioned=left.partitioned,
            partition_count=len(left.partitions),
            left_exists=left.exists,
            right_exists=right_exists,
            right_external_purge=right_exists and ddl.is_external_purge(right.definition),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
