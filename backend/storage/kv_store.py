"""
Key/value storage backends for client-side state.

Equivalent of browser local storage: string keys mapped to string
values, one write per set_item. The SQLite backend keeps everything in a
single `kv` table so a session list update is one row write.

Usage:
    store = SQLiteKeyValueStore("data/client.db")
    await store.connect()
    await store.set_item("chatSessions", "[]")
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

import aiosqlite

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Async string key/value store."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        pass

    async def close(self) -> None:
        """Release any underlying resources."""
        return None


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store; state is lost on exit."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


class SQLiteKeyValueStore(KeyValueStore):
    """Async SQLite key/value store backed by aiosqlite.

    Table layout:
      - key TEXT PRIMARY KEY
      - value TEXT NOT NULL
    """

    def __init__(self, db_path: Union[str, Path]):
        self._db_path = str(db_path)
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Open the SQLite connection and create the table."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(
            self._db_path,
            timeout=30.0,
        )
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA busy_timeout=5000")
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        await self._conn.commit()
        logger.info(f"Client store connected: {self._db_path}")

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("Client store closed")

    def _get_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Store not connected. Call connect() first.")
        return self._conn

    async def get_item(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        async with conn.execute("SELECT value FROM kv WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set_item(self, key: str, value: str) -> None:
        conn = self._get_conn()
        await conn.execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        await conn.commit()

    async def remove_item(self, key: str) -> None:
        conn = self._get_conn()
        await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await conn.commit()
