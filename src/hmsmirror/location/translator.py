"""
Location translation for target tables and partitions.

The translator rewrites source locations into target locations in this
order:

1. The GLM (explicit entries, then entries derived from warehouse plans),
   longest prefix first.
2. For ALIGNED translations, the warehouse plan of the database.
3. Otherwise the relative path is kept under the target namespace. Strict
   mode refuses this fallback.

Every translation is recorded in the translation audit, which later drives
distcp planning.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from hmsmirror import ddl
from hmsmirror.config import RunConfig
from hmsmirror.exceptions import MismatchError, StrictModeViolationError
from hmsmirror.location.consolidator import (
    is_sub_path,
    partition_depth,
    reduce_url_by,
    strip_namespace,
)
from hmsmirror.location.glm import GlobalLocationMap
from hmsmirror.location.warehouse import Warehouse, WarehouseMapBuilder
from hmsmirror.messages import MessageCode
from hmsmirror.models import (
    DatabaseUnit,
    Environment,
    EnvironmentTable,
    MigrationUnit,
    TableType,
    TranslationLevel,
    TranslationType,
)
from hmsmirror.observability import (
    ATTR_DATABASE,
    ATTR_LOCATION,
    ATTR_TABLE,
    ATTR_TRANSLATION_LEVEL,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranslationRecord:
    """One source -> target location rewrite."""

    original: str
    translated: str
    level: TranslationLevel
    consolidation_level: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "original": self.original,
            "translated": self.translated,
            "level": self.level.value,
            "consolidation_level": self.consolidation_level,
        }


class TranslationAudit:
    """
    Append-only record of translations, per database and environment.

    Records are never rewritten during a run. ``remove_database`` exists for
    reuse of an audit across runs.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[Environment, list[TranslationRecord]]] = {}
        self._lock = threading.Lock()

    def add_translation(
        self,
        database: str,
        environment: Environment,
        original: str,
        translated: str,
        level: TranslationLevel,
        consolidation_level: int = 1,
    ) -> TranslationRecord:
        record = TranslationRecord(original, translated, level, consolidation_level)
        with self._lock:
            self._records.setdefault(database, {}).setdefault(environment, []).append(record)
        return record

    def get_translations(
        self, database: str, environment: Environment = Environment.RIGHT
    ) -> list[TranslationRecord]:
        with self._lock:
            return list(self._records.get(database, {}).get(environment, []))

    def databases(self) -> list[str]:
        with self._lock:
            return sorted(self._records)

    def remove_database(self, database: str) -> None:
        with self._lock:
            self._records.pop(database, None)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(r) for envs in self._records.values() for r in envs.values())

    def to_dict(self) -> dict[str, dict[str, list[dict[str, Any]]]]:
        with self._lock:
            return {
                database: {
                    env.value: [r.to_dict() for r in records] for env, records in envs.items()
                }
                for database, envs in self._records.items()
            }


class LocationTranslator:
    """
    Translates table and partition locations for one run.

    Example:
        >>> translator = LocationTranslator(config)
        >>> new_location = translator.translate_table_location(db, unit, original)
    """

    def __init__(
        self,
        config: RunConfig,
        glm: GlobalLocationMap | None = None,
        audit: TranslationAudit | None = None,
        warehouse_builder: WarehouseMapBuilder | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the translator.

        Args:
            config: Run configuration
            glm: Location map; built from the configuration if not provided
            audit: Translation audit (if not provided, a new one is created)
            warehouse_builder: Source locations and warehouse plans
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._config = config
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._glm = glm or GlobalLocationMap(config.global_location_map, tracer=self._tracer)
        self._audit = audit or TranslationAudit()
        self._warehouse_builder = warehouse_builder or WarehouseMapBuilder(tracer=self._tracer)

    @property
    def glm(self) -> GlobalLocationMap:
        return self._glm

    @property
    def audit(self) -> TranslationAudit:
        return self._audit

    @property
    def warehouse_builder(self) -> WarehouseMapBuilder:
        return self._warehouse_builder

    def translate(
        self,
        path: str,
        table_type: TableType = TableType.EXTERNAL_TABLE,
        *,
        database: str | None = None,
        environment: Environment = Environment.RIGHT,
        consolidation_level: int = 1,
    ) -> str:
        """
        Apply the GLM to a bare path.

        The path comes back unchanged when no entry applies. A translation
        is only audited when a database is given.
        """
        match = self._glm.match(path, table_type)
        if match is None:
            return path
        if database is not None:
            self._audit.add_translation(
                database, environment, path, match.translated, match.level, consolidation_level
            )
        return match.translated

    def warehouse_for(self, database: str) -> Warehouse | None:
        """The plan of a database, falling back to the configured warehouse."""
        plan = self._warehouse_builder.get_warehouse_plan(database)
        if plan is not None:
            return plan
        warehouse = self._config.transfer.warehouse
        if warehouse.external_directory and warehouse.managed_directory:
            return Warehouse(warehouse.external_directory, warehouse.managed_directory)
        return None

    def default_location(
        self, db: DatabaseUnit, table: str, table_type: TableType = TableType.EXTERNAL_TABLE
    ) -> str | None:
        """Location a table gets under the database's warehouse directory."""
        plan = self.warehouse_for(db.name)
        if plan is None:
            return None
        namespace = self._config.target_namespace or ""
        return f"{namespace}{plan.directory_for(table_type)}/{db.location_directory}/{table}"

    def target_table_type(self, unit: MigrationUnit) -> TableType:
        """Type the table will have on the target."""
        right = unit.env(Environment.RIGHT)
        if right.definition:
            return ddl.table_type(right.definition)
        left = unit.env(Environment.LEFT).definition
        if ddl.is_managed(left) and not ddl.is_acid(left) and self._config.convert_managed:
            return TableType.EXTERNAL_TABLE
        return ddl.table_type(left)

    def translate_table_location(
        self,
        db: DatabaseUnit,
        unit: MigrationUnit,
        original_location: str,
        consolidation_level: int = 1,
        partition_spec: str | None = None,
        table_type: TableType | None = None,
    ) -> str:
        """
        Translate a table or partition location for the target.

        Args:
            db: Database the table belongs to
            unit: Table being migrated
            original_location: Source location, with namespace
            consolidation_level: Level recorded in the audit
            partition_spec: Set when a partition location is translated
            table_type: Target table type (derived from the unit if omitted)

        Returns:
            The target location, with namespace

        Raises:
            MismatchError: If a relocated partition can't be mapped for distcp
            StrictModeViolationError: If strict mode is on and no GLM entry
                or warehouse plan covers the location
        """
        config = self._config
        table_type = table_type or self.target_table_type(unit)
        namespace = config.target_namespace or ""
        relative = strip_namespace(original_location)

        with self._tracer.span(
            "hmsmirror.translator.translate_table_location",
            {ATTR_DATABASE: db.name, ATTR_TABLE: unit.name, ATTR_LOCATION: original_location},
        ) as span:
            match = self._glm.match(relative, table_type)
            if match is not None:
                translated = namespace + match.translated
                if partition_spec and not translated.endswith("/" + partition_spec):
                    translated = f"{translated}/{partition_spec}"
                level = match.level
                unit.re_mapped = True
                if partition_spec is None:
                    issue = MessageCode.GLM_APPLIED.format(relative, match.translated)
                    unit.add_issue(Environment.RIGHT, issue)
            else:
                translated, level = self._translate_unmatched(
                    db, unit, original_location, relative, partition_spec, table_type
                )

            if span is not None:
                span.set_attribute(ATTR_TRANSLATION_LEVEL, level.value)
            self._record(db.name, original_location, translated, level, consolidation_level)
            logger.debug(
                "Translated %s -> %s (%s) for %s.%s",
                original_location,
                translated,
                level.value,
                db.name,
                unit.name,
            )
            return translated

    def _translate_unmatched(
        self,
        db: DatabaseUnit,
        unit: MigrationUnit,
        original_location: str,
        relative: str,
        partition_spec: str | None,
        table_type: TableType,
    ) -> tuple[str, TranslationLevel]:
        config = self._config
        namespace = config.target_namespace or ""
        table_location = ddl.get_location(unit.env(Environment.LEFT).definition)

        if (
            partition_spec
            and table_location
            and not is_sub_path(original_location, table_location)
            and config.transfer.storage_migration.distcp
        ):
            raise MismatchError(
                MessageCode.PARTITION_LOCATION_MISALIGNED.format(original_location, table_location),
                database=db.name,
                table=unit.name,
            )

        plan = self.warehouse_for(db.name)
        if plan is not None:
            planned_dir = f"{plan.directory_for(table_type)}/{db.location_directory}"
            if is_sub_path(relative, planned_dir):
                return namespace + relative, TranslationLevel.WAREHOUSE_PLAN
            if config.transfer.storage_migration.translation_type == TranslationType.ALIGNED:
                translated = f"{namespace}{planned_dir}/{unit.name}"
                if partition_spec:
                    translated = f"{translated}/{partition_spec}"
                return translated, TranslationLevel.WAREHOUSE_PLAN

        if config.strict_mode:
            reason = "no GLM entry or warehouse plan covers it"
            raise StrictModeViolationError(
                original_location, database=db.name, table=unit.name, reason=reason
            )

        adjusted = relative
        if db.resolved_name != db.name:
            adjusted = relative.replace(f"/{db.name}.db", f"/{db.location_directory}", 1)
        translated = namespace + adjusted
        if partition_spec is None:
            unit.add_issue(Environment.RIGHT, MessageCode.NO_GLM_MATCH.format(relative, translated))
            logger.warning(
                "No GLM entry for %s (%s.%s); keeping relative path", relative, db.name, unit.name
            )
        return translated, TranslationLevel.RELATIVE

    def _record(
        self,
        database: str,
        original: str,
        translated: str,
        level: TranslationLevel,
        consolidation_level: int,
    ) -> None:
        if self._config.transfer.storage_migration.consolidate_tables_for_distcp:
            original = reduce_url_by(original, consolidation_level)
            translated = reduce_url_by(translated, consolidation_level)
        self._audit.add_translation(
            database, Environment.RIGHT, original, translated, level, consolidation_level
        )

    def translate_partition_locations(self, db: DatabaseUnit, unit: MigrationUnit) -> bool:
        """
        Translate every partition location of the target table in place.

        Returns:
            False when a partition has no usable location (an error is
            recorded on the unit), True otherwise
        """
        left = unit.env(Environment.LEFT)
        right = unit.env(Environment.RIGHT)
        if not left.partitioned:
            return True
        table_type = self.target_table_type(unit)
        for spec, location in list(right.partitions.items()):
            if not location:
                error = MessageCode.INVALID_PARTITION_LOCATION.format(spec)
                unit.add_error(Environment.RIGHT, error)
                return False
            right.partitions[spec] = self.translate_table_location(
                db,
                unit,
                location,
                partition_depth(spec) + 1,
                spec,
                table_type,
            )
        return True

    @staticmethod
    def build_partition_add_statement(table: EnvironmentTable) -> str:
        """
        Render the partition list of a table for ``ALTER TABLE ... ADD``.

        Example:
            >>> LocationTranslator.build_partition_add_statement(table)
            "\\tPARTITION (dt='2024-01-01') LOCATION 'hdfs://...'"
        """
        lines = []
        for spec, location in table.partitions.items():
            pairs = []
            for part in spec.split("/"):
                key, _, value = part.partition("=")
                pairs.append(f"{key}='{value}'")
            lines.append(f"\tPARTITION ({', '.join(pairs)}) LOCATION '{location}'")
        return "\n".join(lines)
