"""
Schema rewriting.

The strategy handlers never edit CREATE TABLE text themselves. They describe
the change with a CopySpec and hand it to a SchemaRewriter. HiveSchemaRewriter
is the default implementation and works on the line-per-element output of
``SHOW CREATE TABLE``.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from hmsmirror import ddl
from hmsmirror.exceptions import SchemaRewriteError
from hmsmirror.models import CopySpec

logger = logging.getLogger(__name__)


@runtime_checkable
class SchemaRewriter(Protocol):
    """
    Protocol for schema rewriters.

    Implementations must support stripping or replacing the LOCATION clause,
    stripping the database qualifier from the CREATE line, converting between
    managed and external tables and renaming through a prefix.
    """

    def rewrite(self, definition: list[str], spec: CopySpec) -> list[str]:
        """
        Build the target definition for a copy specification.

        Args:
            definition: Source definition lines
            spec: What to change

        Returns:
            New definition lines. The input list is not modified.

        Raises:
            SchemaRewriteError: If the specification can't be applied
        """
        ...


class HiveSchemaRewriter:
    """
    Line based rewriter for Hive CREATE TABLE/VIEW statements.

    Example:
        >>> rewriter = HiveSchemaRewriter()
        >>> spec = CopySpec(Environment.LEFT, Environment.RIGHT, replace_location=True,
        ...                 location="hdfs://new/warehouse/sales.db/orders")
        >>> lines = rewriter.rewrite(left.definition, spec)
    """

    def rewrite(self, definition: list[str], spec: CopySpec) -> list[str]:
        lines = list(definition)
        index = ddl.create_line_index(lines)
        if index is None:
            raise SchemaRewriteError("Definition has no CREATE statement")

        if ddl.is_view(lines):
            self._rewrite_create_line(lines, index, spec, external=False)
            return lines

        external = ddl.is_external(lines)
        managed = not external
        acid = ddl.is_acid(lines)
        properties = ddl.get_table_properties(lines)

        if spec.upgrade and managed and not acid:
            # Legacy managed tables become external tables that remember their origin.
            external = True
            properties[ddl.LEGACY_MANAGED_FLAG] = "true"
        if spec.make_external:
            external = True
        if spec.make_non_transactional:
            if acid:
                properties[ddl.ACID_DOWNGRADE_FLAG] = "true"
            properties.pop(ddl.TRANSACTIONAL, None)
            properties.pop(ddl.TRANSACTIONAL_PROPERTIES, None)
        if external:
            if spec.take_ownership:
                properties[ddl.EXTERNAL_TABLE_PURGE] = "true"
            else:
                properties.pop(ddl.EXTERNAL_TABLE_PURGE, None)
        for key in ddl.TRANSIENT_PROPERTIES:
            properties.pop(key, None)

        if spec.bucket_threshold is not None:
            buckets = ddl.bucket_count(lines)
            if buckets is not None and buckets <= spec.bucket_threshold:
                lines = self._remove_buckets(lines)

        if spec.strip_location:
            lines = self._remove_location(lines)
        elif spec.replace_location:
            if not spec.location:
                raise SchemaRewriteError("replace_location was requested without a location")
            lines = self._set_location(lines, spec.location)

        lines = self._set_properties(lines, properties)
        index = ddl.create_line_index(lines)
        assert index is not None
        self._rewrite_create_line(lines, index, spec, external=external)
        return lines

    def _rewrite_create_line(
        self,
        lines: list[str],
        index: int,
        spec: CopySpec,
        *,
        external: bool,
    ) -> None:
        line = lines[index]
        match = ddl.CREATE_RE.match(line)
        assert match is not None
        database, name = ddl.split_name(match.group("name"))
        new_name = f"{spec.table_name_prefix or ''}{name}"
        if database and not spec.strip_database_qualifier:
            qualified = f"`{database}`.`{new_name}`"
        else:
            qualified = f"`{new_name}`"
        kind = match.group("kind").upper()
        if kind == "VIEW":
            head = "CREATE VIEW "
        else:
            head = "CREATE EXTERNAL TABLE " if external else "CREATE TABLE "
        if match.group("ine"):
            head += "IF NOT EXISTS "
        indent = line[: len(line) - len(line.lstrip())]
        lines[index] = f"{indent}{head}{qualified}{line[match.end() :]}"

    @staticmethod
    def _remove_location(lines: list[str]) -> list[str]:
        index = ddl.location_index(lines)
        if index is None:
            return lines
        if lines[index].strip().upper().startswith("LOCATION"):
            return lines[:index] + lines[index + 1 :]
        return lines[: index - 1] + lines[index + 1 :]

    @staticmethod
    def _set_location(lines: list[str], location: str) -> list[str]:
        index = ddl.location_index(lines)
        if index is not None:
            if lines[index].strip().upper().startswith("LOCATION"):
                lines[index] = f"LOCATION '{location}'"
            else:
                lines[index] = f"  '{location}'"
            return lines
        insert_at = len(lines)
        for position, line in enumerate(lines):
            if line.strip().upper().startswith("TBLPROPERTIES"):
                insert_at = position
                break
        return lines[:insert_at] + ["LOCATION", f"  '{location}'"] + lines[insert_at:]

    @staticmethod
    def _set_properties(lines: list[str], properties: dict[str, str]) -> list[str]:
        start = end = None
        for position, line in enumerate(lines):
            if line.strip().upper().startswith("TBLPROPERTIES"):
                start = position
                end = position
                while end < len(lines) - 1 and not lines[end].rstrip().endswith(")"):
                    end += 1
                break
        block: list[str] = []
        if properties:
            entries = [f"  '{key}'='{value}'" for key, value in properties.items()]
            block = ["TBLPROPERTIES ("] + [f"{e}," for e in entries[:-1]] + [f"{entries[-1]})"]
        if start is None or end is None:
            return lines + block
        return lines[:start] + block + lines[end + 1 :]

    @staticmethod
    def _remove_buckets(lines: list[str]) -> list[str]:
        result: list[str] = []
        skipping = False
        for line in lines:
            upper = line.strip().upper()
            if upper.startswith("CLUSTERED BY"):
                skipping = True
            if skipping:
                if ddl.BUCKETS_RE.search(line):
                    skipping = False
                continue
            result.append(line)
        return result
