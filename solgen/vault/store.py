"""SQLite key-value store for persisted blobs."""

import asyncio
from pathlib import Path
from time import time
from typing import Any

import aiosqlite
from loguru import logger

CREATE_KV_TABLE = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL NOT NULL
);
"""


class VaultStore:
    """Async get/set blob store backed by SQLite.

    Values are opaque strings; only encrypted vault records are written.

    Example:
        async with VaultStore(Path("data/solgen.db")) as store:
            await store.set("wallets_encrypted", blob)
            blob = await store.get("wallets_encrypted")
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, key: str) -> asyncio.Lock:
        """Per-key lock serializing writers of the same record."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def connect(self) -> None:
        """Open database connection and create the table if needed."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute(CREATE_KV_TABLE)
        await self._connection.commit()

        logger.debug("Connected to vault store: {}", self._db_path)

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Disconnected from vault store: {}", self._db_path)

    async def __aenter__(self) -> "VaultStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Vault store not connected")
        return self._connection

    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        connection = self._require_connection()
        cursor = await connection.execute("SELECT value FROM kv WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            return None
        value: str = row[0]
        return value

    async def set(self, key: str, value: str) -> None:
        """Insert or replace the value stored under key."""
        connection = self._require_connection()
        await connection.execute(
            """
            INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, time()),
        )
        await connection.commit()

    async def remove(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""
        connection = self._require_connection()
        cursor = await connection.execute("DELETE FROM kv WHERE key = ?", (key,))
        await connection.commit()
        return cursor.rowcount > 0
