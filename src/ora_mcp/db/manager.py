"""Connection manager owning the single active Oracle pool."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import StrEnum

from oracledb import AsyncConnection, AsyncConnectionPool

from ora_mcp.config.settings import ConnectionConfig, PoolConfig
from ora_mcp.db.pool import close_pool, create_pool
from ora_mcp.models.errors import DatabaseConnectionError, ErrorCode
from ora_mcp.observability.metrics import MetricsCollector
from ora_mcp.observability.tracing import get_tracing_logger
from ora_mcp.services.error_classifier import classify_connection_error

logger = get_tracing_logger(__name__)

PROBE_SQL = "SELECT 1 FROM DUAL"


class PoolState(StrEnum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    CLOSED = "closed"


class ConnectionManager:
    """Manages the lifecycle of one connection pool and checks out live connections.

    Every checkout is followed by a liveness probe. A connection that fails
    the probe is dropped from the pool and exactly one replacement is checked
    out; a failure of that replacement checkout surfaces as a classified
    connection error.

    Example:
        >>> manager = ConnectionManager(PoolConfig())
        >>> await manager.create_pool(config)
        >>> async with manager.connection() as conn:
        ...     ...
        >>> await manager.close()
    """

    def __init__(
        self,
        pool_config: PoolConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialize connection manager.

        Args:
            pool_config: Pool sizing and timeouts. Defaults are used if None.
            metrics: Optional collector for pool gauges and counters.
        """
        self.pool_config = pool_config or PoolConfig()
        self._metrics = metrics
        self._pool: AsyncConnectionPool | None = None
        self._config: ConnectionConfig | None = None
        self._state = PoolState.UNINITIALIZED
        self._in_use = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is PoolState.ACTIVE and self._pool is not None

    @property
    def config(self) -> ConnectionConfig | None:
        """Connection parameters of the active pool, if any."""
        return self._config if self.is_active else None

    @property
    def connections_in_use(self) -> int:
        return self._in_use

    async def create_pool(self, config: ConnectionConfig) -> None:
        """Create the pool, replacing any pool that is already active.

        Args:
            config: Connection parameters.

        Raises:
            DatabaseConnectionError: If the database cannot be reached, the
                login is refused or the first checkout times out. The manager
                is left without an active pool.
        """
        async with self._lock:
            await self._close_pool()

            logger.info("Initializing connection pool", extra={"dsn": config.safe_dsn})
            try:
                pool = await create_pool(config, self.pool_config)
            except Exception as e:
                self._state = PoolState.UNINITIALIZED
                error = classify_connection_error(e)
                logger.error(
                    f"Failed to create connection pool: {error.message}",
                    extra={"dsn": config.safe_dsn, "error_code": int(error.code)},
                )
                raise error from e

            self._pool = pool
            self._config = config
            self._state = PoolState.ACTIVE
            self._set_in_use(0)

    async def get_connection(self) -> AsyncConnection:
        """Check out a connection that has just passed a liveness probe.

        Returns:
            AsyncConnection: A connection the caller must hand back through
            ``release_connection``.

        Raises:
            DatabaseConnectionError: If no pool is active, the checkout times
                out or the replacement checkout fails.
        """
        pool = self._require_pool()
        conn = await self._checkout(pool)

        try:
            await self._probe(conn)
        except Exception as e:
            logger.warning(f"Connection failed liveness probe, replacing it: {e!s}")
            await self._discard(pool, conn)
            if self._metrics is not None:
                self._metrics.increment_stale_connections()
            conn = await self._checkout(pool)

        self._set_in_use(self._in_use + 1)
        return conn

    async def release_connection(self, conn: AsyncConnection | None) -> None:
        """Return a connection to the pool.

        Failures are logged and never raised.
        """
        if conn is None:
            return

        self._set_in_use(max(0, self._in_use - 1))
        try:
            if self._pool is not None:
                await self._pool.release(conn)
            else:
                await conn.close()
        except Exception as e:
            logger.warning(f"Failed to release connection: {e!s}")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        """Check out a probed connection for the duration of a block."""
        conn = await self.get_connection()
        try:
            yield conn
        finally:
            await self.release_connection(conn)

    async def check_health(self) -> bool:
        """Run a checkout (which probes the connection) and release it.

        Returns:
            bool: True if a round trip to the database succeeded.
        """
        if not self.is_active:
            return False

        try:
            conn = await self.get_connection()
        except Exception as e:
            logger.warning(f"Health check failed: {e!s}")
            return False

        await self.release_connection(conn)
        return True

    async def close(self) -> None:
        """Close the pool immediately. Calling it again is a no-op."""
        async with self._lock:
            await self._close_pool()

    async def _close_pool(self) -> None:
        pool = self._pool
        if pool is None:
            return

        self._pool = None
        self._config = None
        self._state = PoolState.CLOSED
        self._set_in_use(0)
        await close_pool(pool)
        logger.info("Connection pool closed")

    def _require_pool(self) -> AsyncConnectionPool:
        if self._state is not PoolState.ACTIVE or self._pool is None:
            raise DatabaseConnectionError(
                "Connection pool is not initialized, connect first",
                code=ErrorCode.CONNECTION_FAILED,
                details={"state": str(self._state)},
                suggestion="Call connect with host, port, service_name, user and password",
            )
        return self._pool

    async def _checkout(self, pool: AsyncConnectionPool) -> AsyncConnection:
        try:
            return await asyncio.wait_for(pool.acquire(), timeout=self.pool_config.queue_timeout)
        except Exception as e:
            raise classify_connection_error(e) from e

    async def _probe(self, conn: AsyncConnection) -> None:
        with conn.cursor() as cursor:
            await cursor.execute(PROBE_SQL)
            await cursor.fetchall()

    async def _discard(self, pool: AsyncConnectionPool, conn: AsyncConnection) -> None:
        try:
            await pool.drop(conn)
        except Exception as e:
            logger.debug(f"Ignoring error while dropping stale connection: {e!s}")

    def _set_in_use(self, count: int) -> None:
        self._in_use = count
        if self._metrics is not None:
            self._metrics.set_connections_in_use(count)
