"""
JSON serialization for hmsmirror types.

Snapshots carry enums, datetimes and the dataclasses of the migration model,
none of which the standard encoder understands.

Example:
    >>> from hmsmirror.serialization import json_dumps, json_loads
    >>>
    >>> payload = json_dumps(unit.to_dict())
    >>> parsed = json_loads(payload)
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class MigrationJSONEncoder(json.JSONEncoder):
    """
    JSON encoder for migration snapshots.

    Supports:
    - Enum members: Converted to their value (the first element for
      tuple-valued enums)
    - datetime objects: Converted to ISO 8601 format string
    - UUID objects: Converted to string representation
    - sets: Converted to sorted lists
    - Objects with a ``to_dict()`` method: Converted with it
    """

    def default(self, obj: Any) -> Any:
        """
        Convert non-serializable objects to JSON-serializable formats.

        Raises:
            TypeError: If object type is not supported
        """
        if isinstance(obj, Enum):
            value = obj.value
            return value[0] if isinstance(value, tuple) else value
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        to_dict = getattr(obj, "to_dict", None)
        if callable(to_dict):
            return to_dict()
        return super().default(obj)


def json_dumps(obj: Any) -> str:
    """Serialize object to JSON string with MigrationJSONEncoder."""
    return json.dumps(obj, cls=MigrationJSONEncoder, sort_keys=True)


def json_loads(s: str) -> Any:
    """
    Deserialize JSON string to Python object.

    Enum values and datetimes come back as plain strings.
    """
    return json.loads(s)


__all__ = [
    "MigrationJSONEncoder",
    "json_dumps",
    "json_loads",
]
