"""Derive GLM entries from warehouse plans and observed source locations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from hmsmirror.location.consolidator import is_sub_path, strip_namespace
from hmsmirror.location.glm import GlobalLocationMap
from hmsmirror.location.warehouse import Warehouse, WarehouseMapBuilder
from hmsmirror.models import TableType

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """
    Outcome of one reconciliation pass.

    Attributes:
        derived: (source, target, table type) triples added to the GLM.
        unresolved: Database -> source locations that have no plan.
        aligned: Source locations already under their planned directory.
        overridden: Source locations covered by an explicit GLM entry.
    """

    derived: list[tuple[str, str, TableType]] = field(default_factory=list)
    unresolved: dict[str, list[str]] = field(default_factory=dict)
    aligned: list[str] = field(default_factory=list)
    overridden: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "derived": [
                {"source": s, "target": t, "table_type": tt.value} for s, t, tt in self.derived
            ],
            "unresolved": self.unresolved,
            "aligned": self.aligned,
            "overridden": self.overridden,
        }


def reconcile_warehouse_plans(
    builder: WarehouseMapBuilder,
    glm: GlobalLocationMap,
    resolve_database: Callable[[str], str],
    *,
    convert_managed: bool = False,
    default_warehouse: Warehouse | None = None,
) -> ReconciliationReport:
    """
    Turn warehouse plans into derived GLM entries.

    Each observed base location of a planned database is mapped to
    ``{directory}/{resolved_db}.db`` for its table type. Managed locations
    also get an external target when managed tables are converted to
    external ones. Previously derived entries are replaced.

    Args:
        builder: Frozen (or not) collection of sources and plans
        glm: Map receiving the derived entries
        resolve_database: Source database name -> target database name
        convert_managed: Managed tables become external on the target
        default_warehouse: Plan used for databases without their own

    Returns:
        What was derived and which databases could not be reconciled
    """
    report = ReconciliationReport()
    glm.clear_derived()

    for database, sources in sorted(builder.sources.items()):
        plan = builder.get_warehouse_plan(database) or default_warehouse
        if plan is None:
            report.unresolved[database] = [loc for _, loc in sources.all_locations()]
            logger.warning("No warehouse plan for database %s", database)
            continue

        db_dir = f"{resolve_database(database)}.db"
        ext_target = f"{plan.external_directory}/{db_dir}"
        mngd_target = f"{plan.managed_directory}/{db_dir}"

        for table_type, location in sources.all_locations():
            source = strip_namespace(location)
            primary = ext_target if table_type == TableType.EXTERNAL_TABLE else mngd_target
            targets = [(table_type, primary)]
            if table_type == TableType.MANAGED_TABLE and convert_managed:
                targets.append((TableType.EXTERNAL_TABLE, ext_target))

            for target_type, target in targets:
                if glm.has_explicit(source, target_type):
                    report.overridden.append(source)
                elif is_sub_path(source, target):
                    report.aligned.append(source)
                else:
                    glm.add_derived(source, target, target_type)
                    report.derived.append((source, target, target_type))

    logger.info(
        "Reconciled warehouse plans: %d derived entries, %d unresolved databases",
        len(report.derived),
        len(report.unresolved),
    )
    return report
