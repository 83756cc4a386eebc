"""
Serialization utilities for hmsmirror.

Example:
    >>> from hmsmirror.serialization import json_dumps
    >>> json_str = json_dumps(unit.to_dict())
"""

from hmsmirror.serialization.json import (
    MigrationJSONEncoder,
    json_dumps,
    json_loads,
)

__all__ = [
    "MigrationJSONEncoder",
    "json_dumps",
    "json_loads",
]
