import asyncio
from contextlib import asynccontextmanager

import aiosqlite

from utils.logging import logger


class Database:
    """Key/value blob storage for the local replica, backed by SQLite."""

    def __init__(self, db_path: str = "expenses.db"):
        """Initialize database connection settings."""
        self.db_path = db_path
        self._connection_pool: list[aiosqlite.Connection] = []  # Simple connection pool
        self._pool_size = 2  # Maximum number of connections in the pool
        self._pool_lock = asyncio.Lock()
        self._initialized = False

    async def get_connection(self) -> aiosqlite.Connection:
        """Get a database connection from the pool or create a new one."""
        async with self._pool_lock:
            if self._connection_pool:
                logger.debug("Reusing connection from pool")
                return self._connection_pool.pop()

        logger.debug("Opening new async database connection")
        connection = await aiosqlite.connect(self.db_path)
        await connection.execute("PRAGMA journal_mode = WAL")
        # The replica is written on every user action, make each write durable
        await connection.execute("PRAGMA synchronous = FULL")
        return connection

    async def release_connection(self, connection: aiosqlite.Connection) -> None:
        """Release connection back to the pool or close it."""
        async with self._pool_lock:
            if len(self._connection_pool) < self._pool_size:
                self._connection_pool.append(connection)
                logger.debug("Connection released back to pool")
                return

        await connection.close()
        logger.debug("Connection pool full, closed connection")

    async def close(self) -> None:
        """Close all database connections in the pool."""
        logger.info("Closing all database connections")
        async with self._pool_lock:
            for connection in self._connection_pool:
                try:
                    await connection.close()
                except Exception as e:
                    logger.error(f"Error closing pooled connection: {e}")
            self._connection_pool.clear()
        logger.info("All database connections closed")

    @asynccontextmanager
    async def connection(self):
        """Async context manager for database connections."""
        conn = await self.get_connection()
        try:
            async with conn.cursor() as cursor:
                yield cursor
        finally:
            await self.release_connection(conn)

    @asynccontextmanager
    async def transaction(self):
        """Async context manager for database transactions."""
        conn = await self.get_connection()
        await conn.execute("BEGIN")
        try:
            async with conn.cursor() as cursor:
                yield cursor
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
        finally:
            await self.release_connection(conn)

    async def create_tables(self) -> None:
        """Create the key/value table if it doesn't exist."""
        if self._initialized:
            return
        logger.info("Initializing database tables")
        try:
            async with self.transaction() as cursor:
                await cursor.execute("""
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    );
                """)
            self._initialized = True
            logger.info("Database tables initialized successfully")
        except Exception as e:
            logger.error(f"Error creating database tables: {e}")
            raise

    async def get(self, key: str) -> str | None:
        """Read the blob stored under key, None if absent."""
        await self.create_tables()
        async with self.connection() as cursor:
            await cursor.execute("SELECT value FROM kv WHERE key = ?;", (key,))
            row = await cursor.fetchone()
        logger.debug(f"Read key '{key}' ({'hit' if row else 'miss'})")
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        """Store a blob under key, replacing any previous value."""
        await self.create_tables()
        async with self.transaction() as cursor:
            await cursor.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value;",
                (key, value),
            )
        logger.debug(f"Stored key '{key}' ({len(value)} bytes)")

    async def delete(self, key: str) -> None:
        await self.create_tables()
        async with self.transaction() as cursor:
            await cursor.execute("DELETE FROM kv WHERE key = ?;", (key,))


class MemoryBlobStore:
    """In-process stand-in for Database, same interface."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)

    async def close(self) -> None:
        pass
