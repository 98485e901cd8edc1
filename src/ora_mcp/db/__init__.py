"""Database connection utilities.

This package provides python-oracledb connection pool creation and the
manager that owns the active pool and hands out probed connections.
"""

from ora_mcp.db.manager import ConnectionManager, PoolState
from ora_mcp.db.pool import close_pool, create_pool

__all__ = [
    "ConnectionManager",
    "PoolState",
    "create_pool",
    "close_pool",
]
