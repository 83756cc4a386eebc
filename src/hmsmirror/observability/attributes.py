"""
Standard span attributes for hmsmirror.

Attribute constants shared by the dispatcher, the location translator,
the runner and the snapshot repositories so spans can be filtered
consistently.
"""

# =============================================================================
# Run Attributes
# =============================================================================

ATTR_RUN_ID = "hmsmirror.run.id"
"""Identifier of the migration run."""

ATTR_DATA_STRATEGY = "hmsmirror.run.data_strategy"
"""Configured top-level data strategy."""

# =============================================================================
# Catalog Attributes
# =============================================================================

ATTR_DATABASE = "hmsmirror.database"
"""Source database name."""

ATTR_TABLE = "hmsmirror.table"
"""Table name."""

ATTR_ENVIRONMENT = "hmsmirror.environment"
"""Environment (LEFT, RIGHT, SHADOW, TRANSFER)."""

ATTR_STATEMENT_COUNT = "hmsmirror.statement.count"
"""Number of SQL statements in a plan (integer)."""

# =============================================================================
# Strategy Attributes
# =============================================================================

ATTR_STRATEGY = "hmsmirror.strategy"
"""Strategy handler being invoked."""

ATTR_PHASE_STATE = "hmsmirror.phase_state"
"""Phase state of a table after an operation."""

# =============================================================================
# Location Attributes
# =============================================================================

ATTR_LOCATION = "hmsmirror.location"
"""Original storage location being translated."""

ATTR_TRANSLATION_LEVEL = "hmsmirror.translation.level"
"""Which rule produced a translation (GLM, WAREHOUSE_PLAN, RELATIVE)."""

ATTR_GLM_SIZE = "hmsmirror.glm.size"
"""Number of entries in the global location map (integer)."""
