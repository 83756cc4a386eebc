"""
Global location map (GLM).

A GLM holds rewrite rules from a source path prefix to a target prefix,
optionally per table type. Lookups always try longer prefixes first, so a
rule for ``/a/b/c`` wins over one for ``/a/b`` whatever order they were added
in.

Rules come from two places: explicit user entries and entries derived from
warehouse plans during reconciliation. For the same prefix an explicit
target beats a derived one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from hmsmirror.location.consolidator import is_sub_path
from hmsmirror.models import TableType, TranslationLevel
from hmsmirror.observability import ATTR_GLM_SIZE, ATTR_LOCATION, Tracer, create_tracer

logger = logging.getLogger(__name__)

_ALL_TYPES = (TableType.EXTERNAL_TABLE, TableType.MANAGED_TABLE)


@dataclass(frozen=True)
class GlmEntry:
    """
    One rewrite rule.

    Attributes:
        source: Source path prefix (no namespace, no trailing slash).
        targets: Target prefix per table type.
        level: Where the rule came from (GLM when any target is explicit).
        derived_types: Table types whose target comes from a warehouse plan.
    """

    source: str
    targets: Mapping[TableType, str] = field(default_factory=dict)
    level: TranslationLevel = TranslationLevel.GLM
    derived_types: frozenset[TableType] = frozenset()

    def target_for(self, table_type: TableType) -> str | None:
        return self.targets.get(table_type)

    def level_for(self, table_type: TableType) -> TranslationLevel:
        if table_type in self.derived_types:
            return TranslationLevel.WAREHOUSE_PLAN
        return TranslationLevel.GLM

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "targets": {t.value: target for t, target in self.targets.items()},
            "level": self.level.value,
        }


@dataclass(frozen=True)
class GlmMatch:
    """Result of a successful lookup."""

    source: str
    target: str
    translated: str
    level: TranslationLevel


def _normalize(path: str) -> str:
    return path.rstrip("/") or "/"


class GlobalLocationMap:
    """
    Longest-prefix-first location rewrite rules.

    The map is shared by every table worker of a run. All reads and writes
    go through one lock.

    Example:
        >>> glm = GlobalLocationMap({"/a/b": "/x", "/a/b/c": "/y"})
        >>> glm.translate("/a/b/c/d/file", TableType.EXTERNAL_TABLE)
        '/y/d/file'
    """

    def __init__(
        self,
        entries: Mapping[str, str | Mapping[TableType, str]] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the map.

        Args:
            entries: Explicit rules, source prefix -> target prefix or
                table type -> target prefix
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._explicit: dict[str, dict[TableType, str]] = {}
        self._derived: dict[str, dict[TableType, str]] = {}
        self._ordered: list[GlmEntry] | None = None
        self._lock = threading.RLock()
        for source, target in (entries or {}).items():
            if isinstance(target, str):
                self.add(source, target)
            else:
                for table_type, type_target in target.items():
                    self.add(source, type_target, TableType(table_type))

    def add(self, source: str, target: str, table_type: TableType | None = None) -> None:
        """Add an explicit rule. Without a table type it applies to both types."""
        self._put(self._explicit, source, target, table_type)

    def add_derived(self, source: str, target: str, table_type: TableType | None = None) -> None:
        """Add a rule derived from a warehouse plan."""
        self._put(self._derived, source, target, table_type)

    def _put(
        self,
        store: dict[str, dict[TableType, str]],
        source: str,
        target: str,
        table_type: TableType | None,
    ) -> None:
        types = (table_type,) if table_type else _ALL_TYPES
        with self._lock:
            targets = store.setdefault(_normalize(source), {})
            for item in types:
                targets[item] = _normalize(target)
            self._ordered = None

    def remove(self, source: str) -> bool:
        """Remove an explicit rule. Returns True if one was removed."""
        with self._lock:
            removed = self._explicit.pop(_normalize(source), None) is not None
            self._ordered = None
            return removed

    def clear_derived(self) -> None:
        with self._lock:
            self._derived.clear()
            self._ordered = None

    def has_explicit(self, source: str, table_type: TableType) -> bool:
        with self._lock:
            return table_type in self._explicit.get(_normalize(source), {})

    def ordered(self) -> list[GlmEntry]:
        """All rules, longest source prefix first."""
        with self._lock:
            if self._ordered is None:
                entries = []
                for source in set(self._explicit) | set(self._derived):
                    explicit = self._explicit.get(source, {})
                    derived = self._derived.get(source, {})
                    level = TranslationLevel.GLM if explicit else TranslationLevel.WAREHOUSE_PLAN
                    derived_types = frozenset(set(derived) - set(explicit))
                    entries.append(
                        GlmEntry(source, {**derived, **explicit}, level, derived_types)
                    )
                entries.sort(key=lambda e: (-len(e.source), e.source))
                self._ordered = entries
            return list(self._ordered)

    def match(self, path: str, table_type: TableType) -> GlmMatch | None:
        """
        Find the longest rule that covers a path for a table type.

        Args:
            path: Location without namespace
            table_type: Type of the table the location belongs to

        Returns:
            The match, or None when no rule applies
        """
        with self._tracer.span(
            "hmsmirror.glm.match",
            {ATTR_LOCATION: path, ATTR_GLM_SIZE: len(self)},
        ):
            for entry in self.ordered():
                if not is_sub_path(path, entry.source):
                    continue
                target = entry.target_for(table_type)
                if target is None:
                    continue
                translated = target + path[len(entry.source) :]
                if entry.source == "/" and path.startswith("/"):
                    translated = target + path
                logger.debug("Location %s matched %s -> %s", path, entry.source, target)
                return GlmMatch(entry.source, target, translated, entry.level_for(table_type))
            return None

    def translate(self, path: str, table_type: TableType = TableType.EXTERNAL_TABLE) -> str:
        """Rewrite a path, returning it unchanged when no rule applies."""
        match = self.match(path, table_type)
        return match.translated if match else path

    def __len__(self) -> int:
        with self._lock:
            return len(set(self._explicit) | set(self._derived))

    def __contains__(self, source: object) -> bool:
        if not isinstance(source, str):
            return False
        with self._lock:
            key = _normalize(source)
            return key in self._explicit or key in self._derived

    def to_dict(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.ordered()]
