"""
Read-only helpers over CREATE TABLE text.

Definitions are the line-per-element output of ``SHOW CREATE TABLE``:

    CREATE EXTERNAL TABLE `sales.orders`(
      `id` int,
      `amount` double)
    PARTITIONED BY (
      `dt` string)
    ...
    LOCATION
      'hdfs://prod/warehouse/sales.db/orders'
    TBLPROPERTIES (
      'transactional'='true')

None of these helpers modify a definition; see hmsmirror.rewriter for that.
"""

from __future__ import annotations

import re

from hmsmirror.models import TableType

TRANSACTIONAL = "transactional"
TRANSACTIONAL_PROPERTIES = "transactional_properties"
EXTERNAL_TABLE_PURGE = "external.table.purge"
LEGACY_MANAGED_FLAG = "hmsMirror_LegacyManaged"
ACID_DOWNGRADE_FLAG = "hmsMirror_AcidDowngraded"
TRANSIENT_PROPERTIES = ("transient_lastDdlTime",)

_NAME = r"(?:`[^`]+`|[\w$]+)"
CREATE_RE = re.compile(
    r"^(?P<lead>\s*CREATE\s+)"
    r"(?P<external>EXTERNAL\s+)?"
    r"(?P<kind>TABLE|VIEW)\s+"
    r"(?P<ine>IF\s+NOT\s+EXISTS\s+)?"
    rf"(?P<name>{_NAME}(?:\.{_NAME})?)",
    re.IGNORECASE,
)
PROPERTY_RE = re.compile(r"'((?:[^'\\]|\\.)*)'\s*=\s*'((?:[^'\\]|\\.)*)'")
BUCKETS_RE = re.compile(r"INTO\s+(\d+)\s+BUCKETS", re.IGNORECASE)
COLUMN_RE = re.compile(r"`([^`]+)`")


def create_line_index(definition: list[str]) -> int | None:
    for index, line in enumerate(definition):
        if CREATE_RE.match(line):
            return index
    return None


def split_name(name: str) -> tuple[str | None, str]:
    """Split ``db.table`` (with or without backticks) into its parts."""
    parts = [p.strip("`") for p in re.findall(_NAME, name)]
    if len(parts) == 1 and "." in parts[0]:
        parts = parts[0].split(".", 1)
    if len(parts) == 2:
        return parts[0], parts[1]
    return None, parts[0]


def table_name(definition: list[str]) -> tuple[str | None, str] | None:
    """Database qualifier and table name from the CREATE line."""
    index = create_line_index(definition)
    if index is None:
        return None
    match = CREATE_RE.match(definition[index])
    assert match is not None
    return split_name(match.group("name"))


def is_view(definition: list[str]) -> bool:
    index = create_line_index(definition)
    if index is None:
        return False
    match = CREATE_RE.match(definition[index])
    return match is not None and match.group("kind").upper() == "VIEW"


def is_external(definition: list[str]) -> bool:
    index = create_line_index(definition)
    if index is None:
        return False
    match = CREATE_RE.match(definition[index])
    return match is not None and bool(match.group("external"))


def is_managed(definition: list[str]) -> bool:
    return create_line_index(definition) is not None and not (
        is_external(definition) or is_view(definition)
    )


def table_type(definition: list[str]) -> TableType:
    if is_external(definition):
        return TableType.EXTERNAL_TABLE
    return TableType.MANAGED_TABLE


def _property_block(definition: list[str]) -> tuple[int, int] | None:
    """First and last line index of the TBLPROPERTIES block."""
    for start, line in enumerate(definition):
        if line.strip().upper().startswith("TBLPROPERTIES"):
            for end in range(start, len(definition)):
                if definition[end].rstrip().endswith(")"):
                    return start, end
            return start, len(definition) - 1
    return None


def get_table_properties(definition: list[str]) -> dict[str, str]:
    block = _property_block(definition)
    if block is None:
        return {}
    text = " ".join(definition[block[0] : block[1] + 1])
    return {key: value for key, value in PROPERTY_RE.findall(text)}


def get_property(definition: list[str], key: str) -> str | None:
    return get_table_properties(definition).get(key)


def _is_true(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "true"


def is_acid(definition: list[str]) -> bool:
    """Transactional (ACID) tables carry 'transactional'='true'."""
    return _is_true(get_property(definition, TRANSACTIONAL))


def is_insert_only(definition: list[str]) -> bool:
    value = get_property(definition, TRANSACTIONAL_PROPERTIES)
    return is_acid(definition) and value is not None and value.lower() == "insert_only"


def is_hive_native(definition: list[str]) -> bool:
    """Tables backed by a storage handler are not Hive native."""
    return not any(line.strip().upper().startswith("STORED BY") for line in definition)


def is_external_purge(definition: list[str]) -> bool:
    return is_external(definition) and _is_true(get_property(definition, EXTERNAL_TABLE_PURGE))


def is_legacy_managed(definition: list[str]) -> bool:
    return _is_true(get_property(definition, LEGACY_MANAGED_FLAG))


def location_index(definition: list[str]) -> int | None:
    """Index of the line holding the LOCATION value."""
    for index, line in enumerate(definition):
        stripped = line.strip()
        if stripped.upper() == "LOCATION":
            if index + 1 < len(definition):
                return index + 1
            return None
        if stripped.upper().startswith("LOCATION ") and "'" in stripped:
            return index
    return None


def get_location(definition: list[str]) -> str | None:
    index = location_index(definition)
    if index is None:
        return None
    value = definition[index].strip()
    if value.upper().startswith("LOCATION"):
        value = value[len("LOCATION") :].strip()
    return value.strip("'\"") or None


def partition_columns(definition: list[str]) -> list[str]:
    """Names of the partition columns, in declaration order."""
    columns: list[str] = []
    inside = False
    for line in definition:
        stripped = line.strip()
        if stripped.upper().startswith("PARTITIONED BY"):
            inside = True
            stripped = stripped[len("PARTITIONED BY") :].strip().lstrip("(")
        if not inside:
            continue
        names = COLUMN_RE.findall(stripped)
        if names:
            columns.extend(names)
        elif stripped and not stripped.startswith("("):
            token = stripped.split()[0].strip("(),")
            if token:
                columns.append(token)
        if stripped.endswith(")"):
            break
    return columns


def bucket_count(definition: list[str]) -> int | None:
    for line in definition:
        match = BUCKETS_RE.search(line)
        if match:
            return int(match.group(1))
    return None


def _signature(definition: list[str]) -> list[str]:
    """Column and storage lines, without name, location and properties."""
    signature: list[str] = []
    skip_next = False
    for line in definition:
        stripped = line.strip()
        upper = stripped.upper()
        if skip_next:
            skip_next = False
            continue
        if upper.startswith("TBLPROPERTIES"):
            break
        if upper == "LOCATION":
            skip_next = True
            continue
        if upper.startswith("LOCATION "):
            continue
        match = CREATE_RE.match(line)
        if match:
            stripped = line[match.end() :].strip()
        signature.append(" ".join(stripped.lower().split()))
    return signature


def schemas_equal(left: list[str], right: list[str]) -> bool:
    """Compare two definitions ignoring names, locations and properties."""
    return _signature(left) == _signature(right)


def render_create(definition: list[str], if_not_exists: bool = False) -> str:
    """Render a definition as a single CREATE statement."""
    lines = list(definition)
    if if_not_exists:
        index = create_line_index(lines)
        if index is not None:
            match = CREATE_RE.match(lines[index])
            assert match is not None
            if not match.group("ine"):
                start = match.start("name")
                lines[index] = f"{lines[index][:start]}IF NOT EXISTS {lines[index][start:]}"
    return "\n".join(lines)
