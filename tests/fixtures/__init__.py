"""
Shared test fixtures for the hmsmirror library.

Usage:
    from tests.fixtures import (
        acid_definition,
        external_definition,
        make_database,
        make_unit,
    )
"""

from tests.fixtures.tables import (
    DR,
    MANAGED_LOCATION,
    PROD,
    SALES_LOCATION,
    acid_definition,
    daily_partitions,
    external_definition,
    make_database,
    make_unit,
    managed_definition,
    table_definition,
    view_definition,
)

__all__ = [
    "PROD",
    "DR",
    "SALES_LOCATION",
    "MANAGED_LOCATION",
    "table_definition",
    "external_definition",
    "managed_definition",
    "acid_definition",
    "view_definition",
    "daily_partitions",
    "make_unit",
    "make_database",
]
