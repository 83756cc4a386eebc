"""
Location translation for hmsmirror.

Source table and partition locations are rewritten for the target cluster
through the global location map (GLM), warehouse plans, or a relative
fallback, and every rewrite is audited.
"""

from hmsmirror.location.consolidator import (
    get_namespace,
    is_sub_path,
    partition_depth,
    reduce_url_by,
    strip_namespace,
)
from hmsmirror.location.glm import GlmEntry, GlmMatch, GlobalLocationMap
from hmsmirror.location.reconcile import ReconciliationReport, reconcile_warehouse_plans
from hmsmirror.location.translator import (
    LocationTranslator,
    TranslationAudit,
    TranslationRecord,
)
from hmsmirror.location.warehouse import SourceLocationMap, Warehouse, WarehouseMapBuilder

__all__ = [
    # Path arithmetic
    "get_namespace",
    "strip_namespace",
    "reduce_url_by",
    "partition_depth",
    "is_sub_path",
    # GLM
    "GlobalLocationMap",
    "GlmEntry",
    "GlmMatch",
    # Warehouses
    "Warehouse",
    "SourceLocationMap",
    "WarehouseMapBuilder",
    "ReconciliationReport",
    "reconcile_warehouse_plans",
    # Translation
    "LocationTranslator",
    "TranslationAudit",
    "TranslationRecord",
]
