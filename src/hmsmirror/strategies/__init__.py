"""
Strategy decision engine.

Handlers build the SQL plans of a table; the dispatcher picks the handler,
follows delegations and converts failures into table errors.
"""

from hmsmirror.strategies.base import StrategyContext, build_table_schema
from hmsmirror.strategies.decisions import (
    CreateDecision,
    Resolution,
    decide_export_import_create,
    decide_intermediate_create,
    decide_schema_create,
    decide_sql_create,
    resolve_acid_downgrade,
    resolve_export_import,
    resolve_hybrid,
    resolve_sql,
)
from hmsmirror.strategies.dispatcher import (
    HANDLERS,
    DispatchOutcome,
    HandlerSpec,
    StrategyDispatcher,
)
from hmsmirror.strategies.facts import TableFacts

__all__ = [
    "StrategyDispatcher",
    "DispatchOutcome",
    "HandlerSpec",
    "HANDLERS",
    "StrategyContext",
    "TableFacts",
    "build_table_schema",
    # Decisions
    "Resolution",
    "CreateDecision",
    "resolve_hybrid",
    "resolve_acid_downgrade",
    "resolve_sql",
    "resolve_export_import",
    "decide_sql_create",
    "decide_intermediate_create",
    "decide_export_import_create",
    "decide_schema_create",
]
