"""Pytest configuration and shared fixtures.

This module provides shared fixtures and configuration for all tests,
including doubles for the python-oracledb pool, connection and cursor.
"""

import os
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ora_mcp.config.settings import ConnectionConfig, reset_settings


@pytest.fixture(autouse=True)
def reset_config() -> None:
    """Reset global settings before each test."""
    reset_settings()


@pytest.fixture(autouse=True)
def disable_metrics_for_tests():
    """Disable metrics for tests to avoid port conflicts."""
    os.environ["OBSERVABILITY_METRICS_ENABLED"] = "false"
    yield
    # Clean up
    if "OBSERVABILITY_METRICS_ENABLED" in os.environ:
        del os.environ["OBSERVABILITY_METRICS_ENABLED"]


@pytest.fixture
def connection_config() -> ConnectionConfig:
    """Connection parameters for a database that is never contacted."""
    return ConnectionConfig(
        host="db.example.com",
        port=1521,
        service_name="ORCLPDB1",
        user="scott",
        password="tiger",
    )


@pytest.fixture
def make_cursor() -> Callable[..., MagicMock]:
    """Factory for mock AsyncCursor objects."""

    def factory(
        description: list[tuple[Any, ...]] | None = None,
        rows: list[Any] | None = None,
        rowcount: int = 0,
    ) -> MagicMock:
        cursor = MagicMock()
        cursor.execute = AsyncMock()
        cursor.fetchmany = AsyncMock(return_value=list(rows or []))
        cursor.fetchall = AsyncMock(return_value=list(rows or []))
        cursor.description = description
        cursor.rowcount = rowcount
        return cursor

    return factory


@pytest.fixture
def make_connection() -> Callable[[MagicMock], MagicMock]:
    """Factory for mock AsyncConnection objects whose cursor() yields ``cursor``."""

    def factory(cursor: MagicMock) -> MagicMock:
        conn = MagicMock()
        conn.cursor.return_value.__enter__.return_value = cursor
        # A truthy __exit__ would swallow exceptions raised inside the block.
        conn.cursor.return_value.__exit__.return_value = False
        conn.commit = AsyncMock()
        conn.rollback = AsyncMock()
        conn.close = AsyncMock()
        return conn

    return factory


@pytest.fixture
def make_pool() -> Callable[..., MagicMock]:
    """Factory for mock AsyncConnectionPool objects handing out ``connections`` in order."""

    def factory(*connections: MagicMock) -> MagicMock:
        pool = MagicMock()
        pool.acquire = AsyncMock(side_effect=list(connections))
        pool.release = AsyncMock()
        pool.drop = AsyncMock()
        pool.close = AsyncMock()
        return pool

    return factory
