"""Database connection pool management.

This module provides utilities for creating and closing python-oracledb
asyncio connection pools for Oracle databases.
"""

import asyncio
import logging

import oracledb
from oracledb import AsyncConnectionPool

from ora_mcp.config.settings import ConnectionConfig, PoolConfig

logger = logging.getLogger(__name__)


async def create_pool(connection: ConnectionConfig, pool_config: PoolConfig) -> AsyncConnectionPool:
    """Create and verify a connection pool.

    The driver opens connections lazily, so one connection is checked out
    and returned to prove the credentials and the listener before the pool
    is handed back. A pool that fails this check is force-closed.

    Args:
        connection: Connection parameters.
        pool_config: Pool sizing and timeouts.

    Returns:
        AsyncConnectionPool: A verified python-oracledb asyncio pool.

    Raises:
        oracledb.Error: If the database refuses or cannot be reached.
        TimeoutError: If the first checkout exceeds ``queue_timeout``.

    Example:
        >>> pool = await create_pool(ConnectionConfig(...), PoolConfig())
        >>> conn = await pool.acquire()
        >>> await pool.release(conn)
    """
    pool = oracledb.create_pool_async(
        user=connection.user,
        password=connection.password.get_secret_value(),
        dsn=connection.dsn,
        min=pool_config.min_size,
        max=pool_config.max_size,
        increment=pool_config.increment,
        timeout=pool_config.idle_timeout,
        ping_interval=pool_config.ping_interval,
        wait_timeout=int(pool_config.queue_timeout * 1000),
        getmode=oracledb.POOL_GETMODE_TIMEDWAIT,
        tcp_connect_timeout=pool_config.connect_timeout,
    )

    try:
        conn = await asyncio.wait_for(pool.acquire(), timeout=pool_config.queue_timeout)
        await pool.release(conn)
    except BaseException:
        await close_pool(pool)
        raise

    logger.info(
        "Connection pool created",
        extra={
            "dsn": connection.safe_dsn,
            "min_size": pool_config.min_size,
            "max_size": pool_config.max_size,
        },
    )
    return pool


async def close_pool(pool: AsyncConnectionPool) -> None:
    """Close a pool immediately, without waiting for busy connections.

    Errors are logged and not raised.
    """
    try:
        await pool.close(force=True)
    except Exception as e:
        logger.warning(f"Error closing connection pool: {e!s}")
