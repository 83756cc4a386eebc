"""
Shared pytest fixtures for the hmsmirror library tests.

This module provides:
- Configuration fixtures (base_config, config_factory)
- Location fixtures (translator)
- Strategy fixtures (dispatcher, dispatcher_factory)
- Catalog fixtures (left_catalog, right_catalog)
- Repository fixtures (snapshot_repo, sqlite_connection, sqlite_snapshot_repo)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import TYPE_CHECKING, Any

import pytest
import pytest_asyncio

from hmsmirror.catalog import InMemoryCatalog
from hmsmirror.config import RunConfig
from hmsmirror.location import LocationTranslator
from hmsmirror.observability import MockTracer
from hmsmirror.repositories import InMemoryRunSnapshotRepository
from hmsmirror.strategies import StrategyDispatcher
from tests.fixtures import DR, PROD

if TYPE_CHECKING:
    import aiosqlite

    from hmsmirror.repositories import SQLiteRunSnapshotRepository

# ============================================================================
# SQLite Availability Check
# ============================================================================

AIOSQLITE_AVAILABLE = False
try:
    import aiosqlite

    AIOSQLITE_AVAILABLE = True
except ImportError:
    aiosqlite = None  # type: ignore[assignment]


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")


# ============================================================================
# Skip Condition
# ============================================================================

skip_if_no_aiosqlite = pytest.mark.skipif(not AIOSQLITE_AVAILABLE, reason="aiosqlite not installed")


# ============================================================================
# Configuration Fixtures
# ============================================================================

BASE_CONFIG: dict[str, Any] = {
    "data_strategy": "SCHEMA_ONLY",
    "databases": ["sales"],
    "left": {"hcfs_namespace": PROD},
    "right": {"hcfs_namespace": DR},
    "global_location_map": {"/data/sales.db": "/warehouse/external/sales.db"},
}


def build_config(**overrides: Any) -> RunConfig:
    """
    Build a RunConfig from BASE_CONFIG.

    Nested mappings are merged one level deep, so
    ``build_config(migrate_acid={"enabled": True})`` keeps the other
    migrate_acid defaults.
    """
    data: dict[str, Any] = {key: value for key, value in BASE_CONFIG.items()}
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value
    return RunConfig.model_validate(data)


@pytest.fixture
def base_config() -> RunConfig:
    """SCHEMA_ONLY run of the sales database with one GLM entry."""
    return build_config()


@pytest.fixture
def config_factory() -> Callable[..., RunConfig]:
    """Factory building configurations from keyword overrides."""
    return build_config


# ============================================================================
# Location Fixtures
# ============================================================================


@pytest.fixture
def translator(base_config: RunConfig) -> LocationTranslator:
    return LocationTranslator(base_config, enable_tracing=False)


# ============================================================================
# Strategy Fixtures
# ============================================================================


def build_dispatcher(config: RunConfig, **kwargs: Any) -> StrategyDispatcher:
    translator = LocationTranslator(config, enable_tracing=False)
    kwargs.setdefault("run_id", "run-1")
    kwargs.setdefault("enable_tracing", False)
    return StrategyDispatcher(config, translator, **kwargs)


@pytest.fixture
def dispatcher(base_config: RunConfig) -> StrategyDispatcher:
    return build_dispatcher(base_config)


@pytest.fixture
def dispatcher_factory() -> Callable[..., StrategyDispatcher]:
    """Factory building a dispatcher (with its own translator) per configuration."""

    def factory(**overrides: Any) -> StrategyDispatcher:
        return build_dispatcher(build_config(**overrides))

    return factory


@pytest.fixture
def mock_tracer() -> MockTracer:
    return MockTracer()


# ============================================================================
# Catalog Fixtures
# ============================================================================


@pytest.fixture
def left_catalog() -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    catalog.add_database("sales", location=f"{PROD}/data/sales.db", owner="etl")
    return catalog


@pytest.fixture
def right_catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


# ============================================================================
# Repository Fixtures
# ============================================================================


@pytest.fixture
def snapshot_repo() -> InMemoryRunSnapshotRepository:
    return InMemoryRunSnapshotRepository(enable_tracing=False)


@pytest_asyncio.fixture
async def sqlite_connection() -> AsyncGenerator[aiosqlite.Connection, None]:
    """
    Provide an in-memory SQLite connection.

    Skips the test if aiosqlite is not installed.
    """
    if not AIOSQLITE_AVAILABLE:
        pytest.skip("aiosqlite not installed")
    async with aiosqlite.connect(":memory:") as connection:
        yield connection


@pytest_asyncio.fixture
async def sqlite_snapshot_repo(
    sqlite_connection: aiosqlite.Connection,
) -> SQLiteRunSnapshotRepository:
    """SQLite snapshot repository with its tables created."""
    from hmsmirror.repositories import SQLiteRunSnapshotRepository

    repo = SQLiteRunSnapshotRepository(sqlite_connection, enable_tracing=False)
    await repo.initialize()
    return repo
