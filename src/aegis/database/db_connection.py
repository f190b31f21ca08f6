"""
The bot's single SQLite connection.

The store opens nothing itself: it borrows this connection through
``read()`` for lookups and ``transaction()`` for writes. The database runs in
WAL mode, so reads proceed while a write is in flight; writes queue on a
semaphore instead of contending on SQLite's busy timeout.

    await db_connection.open(path)
    store = Store(db_connection)
    ...
    await db_connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from aegis.database.db_schema import SchemaManager
from aegis.util.logger import get_logger

logger = get_logger("database_connection")

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
]


class ConnectionManager:
    """Owns the aiosqlite connection for the lifetime of the process."""

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)

    async def open(self, path: Path) -> None:
        """Connect to ``path``, apply pragmas and create missing tables. A second call is ignored."""
        if self._conn is not None:
            logger.warning("[DB CONNECTION] Already open, ignoring open(%s)", path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()
        await SchemaManager.initialize_schema(self._conn)

        logger.info("[DB CONNECTION] Opened %s", path)

    async def close(self) -> None:
        """Checkpoint the WAL into the main file and close."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Closed")

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The open connection.

        Raises:
            RuntimeError: If ``open()`` has not been awaited yet, or the connection was closed.
        """
        if self._conn is None:
            raise RuntimeError("Database connection is not open")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """One write at a time; commits on clean exit, rolls back on any exception."""
        conn = self.connection
        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        yield self.connection


db_connection = ConnectionManager()
