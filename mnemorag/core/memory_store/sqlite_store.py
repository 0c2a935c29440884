"""
SQLite memory store.

Owns the database connection that the graph store shares, so memories and
the graph derived from them live in one file.
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite

from mnemorag.core.memory_store.base import MemoryStore
from mnemorag.models.memory import Memory, MemoryKind
from mnemorag.utils.exceptions import StorageError, ValidationError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

MEMORY_COLUMNS = "id, content, kind, tags, metadata, created_at, updated_at"


class SQLiteMemoryStore(MemoryStore):
    """
    SQLite-backed store for raw memory records.

    Example:
        >>> store = SQLiteMemoryStore("data/mnemorag.db")
        >>> await store.initialize()
        >>> await store.upsert_memory(Memory(id="m1", content="React integrates with Redis."))
        >>> graph = SQLiteGraphStore(connection=await store.get_database())
    """

    def __init__(self, db_path: str = "data/mnemorag.db"):
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            # Autocommit; the graph store opens its transactions explicitly
            self.connection = await aiosqlite.connect(self.db_path, isolation_level=None)
            await self.connection.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                await self.connection.execute("PRAGMA journal_mode = WAL")

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()
        await self._execute(
            """
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                kind TEXT NOT NULL,
                tags TEXT DEFAULT '[]',
                metadata TEXT DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        await self._execute("CREATE INDEX IF NOT EXISTS idx_memories_kind ON memories(kind)")

    async def get_database(self) -> aiosqlite.Connection:
        await self.connect()
        return self.connection

    async def upsert_memory(self, memory: Memory) -> Memory:
        """
        Insert or replace a memory.

        Raises:
            ValidationError: If memory has no id or content
            StorageError: If the write fails
        """
        if not memory.id or not memory.id.strip():
            raise ValidationError("memory_id cannot be empty")
        if not memory.content or not memory.content.strip():
            raise ValidationError("Memory must have content", context={"memory_id": memory.id})

        memory.updated_at = datetime.now()
        await self._execute(
            f"INSERT OR REPLACE INTO memories ({MEMORY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                memory.id,
                memory.content,
                memory.kind.value,
                json.dumps(memory.tags),
                json.dumps(memory.metadata),
                memory.created_at.isoformat(),
                memory.updated_at.isoformat(),
            ),
        )
        logger.bind(memory_id=memory.id, operation="upsert_memory").debug(
            f"Memory stored: {memory.id}",
        )
        return memory

    async def get_memory(self, memory_id: str) -> Memory | None:
        if not memory_id or not memory_id.strip():
            raise ValidationError("memory_id cannot be empty")
        cursor = await self._execute(
            f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_memory(row) if row else None

    async def delete_memory(self, memory_id: str) -> bool:
        cursor = await self._execute("DELETE FROM memories WHERE id = ?", (memory_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.bind(memory_id=memory_id, operation="delete_memory").info(
                f"Memory deleted: {memory_id}",
            )
        return deleted

    async def list_memories(self) -> list[Memory]:
        cursor = await self._execute(f"SELECT {MEMORY_COLUMNS} FROM memories ORDER BY id")
        rows = await cursor.fetchall()
        return [self._row_to_memory(row) for row in rows]

    async def get_memories_by_ids(self, memory_ids: list[str]) -> list[Memory]:
        if not memory_ids:
            return []
        placeholders = ",".join("?" for _ in memory_ids)
        cursor = await self._execute(
            f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id IN ({placeholders}) ORDER BY id",
            tuple(memory_ids),
        )
        rows = await cursor.fetchall()
        return [self._row_to_memory(row) for row in rows]

    async def count_memories(self) -> int:
        cursor = await self._execute("SELECT COUNT(*) FROM memories")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    async def _execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        await self.connect()
        try:
            return await self.connection.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}", context={"sql": sql.strip()[:120]}) from e

    def _row_to_memory(self, row: tuple) -> Memory:
        """Convert database row to Memory object."""
        return Memory(
            id=row[0],
            content=row[1],
            kind=MemoryKind(row[2]),
            tags=json.loads(row[3]) if row[3] else [],
            metadata=json.loads(row[4]) if row[4] else {},
            created_at=datetime.fromisoformat(row[5]),
            updated_at=datetime.fromisoformat(row[6]),
        )
