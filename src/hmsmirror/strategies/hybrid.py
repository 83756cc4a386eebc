"""HYBRID strategy: choose EXPORT_IMPORT, SQL or ACID handling per table."""

from __future__ import annotations

import logging

from hmsmirror.models import DatabaseUnit, DataStrategy, Environment, MigrationUnit
from hmsmirror.strategies.base import StrategyContext
from hmsmirror.strategies.decisions import acid_in_place, resolve_hybrid
from hmsmirror.strategies.facts import TableFacts

logger = logging.getLogger(__name__)


def hybrid(ctx: StrategyContext, db: DatabaseUnit, unit: MigrationUnit) -> bool:
    facts = TableFacts.from_unit(unit)
    if acid_in_place(facts, ctx.config):
        return ctx.delegate(db, unit, DataStrategy.HYBRID_ACID_DOWNGRADE_INPLACE)

    resolution = resolve_hybrid(facts, ctx.config, ctx.run_context)
    if resolution.issue:
        unit.add_issue(Environment.LEFT, resolution.issue)
    if resolution.error:
        unit.add_error(Environment.LEFT, resolution.error)
    if resolution.strategy is None:
        return False

    logger.info("HYBRID resolved %s.%s to %s", db.name, unit.name, resolution.strategy.value)
    unit.strategy = resolution.strategy
    return ctx.delegate(db, unit, resolution.strategy)
