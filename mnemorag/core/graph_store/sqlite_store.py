"""
SQLite graph store implementation.

Entities, relationships, communities and reports live in one SQLite file,
optionally sharing the connection owned by the memory store so graph
writes and memory reads go through a single transactional handle.
"""

import asyncio
import json
import sqlite3
from collections import defaultdict
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from mnemorag.core.graph_store.base import GraphStore
from mnemorag.models.graph import (
    Community,
    CommunityReplacement,
    CommunityReport,
    Entity,
    EntityType,
    GraphStats,
    Relationship,
    RelationshipDirection,
)
from mnemorag.models.memory import MemoryFingerprint
from mnemorag.utils.exceptions import NotFoundError, StorageError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

ENTITY_COLUMNS = (
    "id, canonical_name, entity_type, description, mention_count, extraction_confidence, "
    "extraction_version, first_seen_at, last_seen_at, embedding_id, metadata"
)
RELATIONSHIP_COLUMNS = (
    "id, source_entity_id, target_entity_id, relationship_type, description, strength, created_at"
)
COMMUNITY_COLUMNS = (
    "id, level, parent_id, entity_count, resolution, modularity, created_at, updated_at"
)
REPORT_COLUMNS = (
    "id, community_id, title, summary, full_content, key_findings, rating, "
    "rating_explanation, prompt_version, embedding_id, created_at"
)


def _prefixed(alias: str, columns: str) -> str:
    return ", ".join(f"{alias}.{column.strip()}" for column in columns.split(","))


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS entities (
        id TEXT PRIMARY KEY,
        canonical_name TEXT NOT NULL COLLATE NOCASE UNIQUE,
        entity_type TEXT NOT NULL,
        description TEXT,
        mention_count INTEGER NOT NULL DEFAULT 1,
        extraction_confidence REAL NOT NULL DEFAULT 1.0,
        extraction_version TEXT,
        first_seen_at TEXT NOT NULL,
        last_seen_at TEXT NOT NULL,
        embedding_id TEXT,
        metadata TEXT DEFAULT '{}'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS relationships (
        id TEXT PRIMARY KEY,
        source_entity_id TEXT NOT NULL,
        target_entity_id TEXT NOT NULL,
        relationship_type TEXT NOT NULL,
        description TEXT,
        strength INTEGER NOT NULL CHECK (strength BETWEEN 1 AND 10),
        created_at TEXT NOT NULL,
        UNIQUE (source_entity_id, target_entity_id, relationship_type),
        FOREIGN KEY (source_entity_id) REFERENCES entities(id) ON DELETE CASCADE,
        FOREIGN KEY (target_entity_id) REFERENCES entities(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS entity_memories (
        entity_id TEXT NOT NULL,
        memory_id TEXT NOT NULL,
        mention_text TEXT,
        confidence REAL DEFAULT 1.0,
        created_at TEXT NOT NULL,
        PRIMARY KEY (entity_id, memory_id),
        FOREIGN KEY (entity_id) REFERENCES entities(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS relationship_sources (
        relationship_id TEXT NOT NULL,
        memory_id TEXT NOT NULL,
        evidence_text TEXT,
        created_at TEXT NOT NULL,
        PRIMARY KEY (relationship_id, memory_id),
        FOREIGN KEY (relationship_id) REFERENCES relationships(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS communities (
        id TEXT PRIMARY KEY,
        level INTEGER NOT NULL,
        parent_id TEXT,
        entity_count INTEGER NOT NULL DEFAULT 0,
        resolution REAL,
        modularity REAL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (parent_id) REFERENCES communities(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS community_members (
        community_id TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        PRIMARY KEY (community_id, entity_id),
        FOREIGN KEY (community_id) REFERENCES communities(id) ON DELETE CASCADE,
        FOREIGN KEY (entity_id) REFERENCES entities(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS community_reports (
        id TEXT PRIMARY KEY,
        community_id TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL,
        summary TEXT NOT NULL,
        full_content TEXT NOT NULL,
        key_findings TEXT DEFAULT '[]',
        rating REAL,
        rating_explanation TEXT,
        prompt_version TEXT,
        embedding_id TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (community_id) REFERENCES communities(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memory_fingerprints (
        memory_id TEXT PRIMARY KEY,
        content_hash TEXT NOT NULL,
        extraction_version TEXT NOT NULL,
        processed_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pending_vector_deletes (
        vector_id TEXT PRIMARY KEY,
        queued_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_relationships_source ON relationships(source_entity_id)",
    "CREATE INDEX IF NOT EXISTS idx_relationships_target ON relationships(target_entity_id)",
    "CREATE INDEX IF NOT EXISTS idx_entity_memories_memory ON entity_memories(memory_id)",
    "CREATE INDEX IF NOT EXISTS idx_relationship_sources_memory ON relationship_sources(memory_id)",
    "CREATE INDEX IF NOT EXISTS idx_communities_level ON communities(level)",
    "CREATE INDEX IF NOT EXISTS idx_community_members_entity ON community_members(entity_id)",
]


class SQLiteGraphStore(GraphStore):
    """
    SQLite-based knowledge graph store.

    Features:
    - Case-insensitive unique canonical names
    - Cascading deletes from entities to edges, attributions and memberships
    - Nested transactions via savepoints
    - Atomic replacement of the whole community hierarchy
    """

    def __init__(
        self,
        db_path: str = "data/mnemorag.db",
        connection: aiosqlite.Connection | None = None,
    ):
        """
        Initialize SQLite graph store.

        Args:
            db_path: Path to SQLite database file (ignored if connection is given)
            connection: Shared connection, e.g. from MemoryStore.get_database(). Its owner
                must open it in autocommit mode (isolation_level=None).
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = connection
        self._owns_connection = connection is None
        self._tx_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task | None = None
        self._tx_depth = 0
        self._configured = False

        if self._owns_connection and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            # Transactions are opened explicitly in transaction()
            self.connection = await aiosqlite.connect(self.db_path, isolation_level=None)
        if not self._configured:
            await self.connection.execute("PRAGMA foreign_keys = ON")
            self._configured = True

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()
        for statement in SCHEMA:
            await self._execute(statement)
        logger.bind(db_path=self.db_path).debug("Graph schema initialized")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        await self._ensure_connection()
        task = asyncio.current_task()

        if self._tx_owner is not None and self._tx_owner is task:
            self._tx_depth += 1
            savepoint = f"sp_{self._tx_depth}"
            await self._execute(f"SAVEPOINT {savepoint}")
            try:
                yield
            except BaseException:
                await self._execute(f"ROLLBACK TO {savepoint}")
                await self._execute(f"RELEASE {savepoint}")
                raise
            else:
                await self._execute(f"RELEASE {savepoint}")
            finally:
                self._tx_depth -= 1
            return

        async with self._tx_lock:
            self._tx_owner = task
            self._tx_depth = 0
            try:
                await self._execute("BEGIN")
                try:
                    yield
                except BaseException:
                    await self.connection.rollback()
                    raise
                else:
                    await self.connection.commit()
            finally:
                self._tx_owner = None

    # ═══════════════════════════════════════════════════════════
    # ENTITY OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_entity(self, entity: Entity) -> Entity:
        await self._ensure_connection()
        try:
            await self.connection.execute(
                f"INSERT INTO entities ({ENTITY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._entity_params(entity),
            )
        except sqlite3.IntegrityError as e:
            raise StorageError(
                f"Entity '{entity.canonical_name}' already exists",
                context={"entity_id": entity.id, "canonical_name": entity.canonical_name},
            ) from e
        except sqlite3.Error as e:
            raise StorageError(f"Failed to create entity: {e}", context={"entity_id": entity.id}) from e
        return entity

    async def get_entity(self, entity_id: str) -> Entity | None:
        row = await self._fetchone(
            f"SELECT {ENTITY_COLUMNS} FROM entities WHERE id = ?", (entity_id,)
        )
        return self._row_to_entity(row) if row else None

    async def get_entity_by_name(self, canonical_name: str) -> Entity | None:
        name = " ".join(canonical_name.split())
        row = await self._fetchone(
            f"SELECT {ENTITY_COLUMNS} FROM entities WHERE canonical_name = ? COLLATE NOCASE",
            (name,),
        )
        return self._row_to_entity(row) if row else None

    async def get_entities(self, entity_ids: list[str]) -> list[Entity]:
        if not entity_ids:
            return []
        placeholders = ",".join("?" for _ in entity_ids)
        rows = await self._fetchall(
            f"SELECT {ENTITY_COLUMNS} FROM entities WHERE id IN ({placeholders}) ORDER BY id",
            tuple(entity_ids),
        )
        return [self._row_to_entity(row) for row in rows]

    async def list_entities(self) -> list[Entity]:
        rows = await self._fetchall(f"SELECT {ENTITY_COLUMNS} FROM entities ORDER BY id")
        return [self._row_to_entity(row) for row in rows]

    async def update_entity(self, entity: Entity) -> None:
        cursor = await self._execute(
            """
            UPDATE entities SET
                canonical_name = ?, entity_type = ?, description = ?, mention_count = ?,
                extraction_confidence = ?, extraction_version = ?, first_seen_at = ?,
                last_seen_at = ?, embedding_id = ?, metadata = ?
            WHERE id = ?
            """,
            (*self._entity_params(entity)[1:], entity.id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Entity {entity.id} not found", context={"entity_id": entity.id})

    async def set_entity_embedding_id(self, entity_id: str, embedding_id: str | None) -> None:
        await self._execute(
            "UPDATE entities SET embedding_id = ? WHERE id = ?", (embedding_id, entity_id)
        )

    async def delete_entity(self, entity_id: str) -> bool:
        cursor = await self._execute("DELETE FROM entities WHERE id = ?", (entity_id,))
        return cursor.rowcount > 0

    async def find_entities_by_memory(self, memory_id: str) -> list[Entity]:
        rows = await self._fetchall(
            f"""
            SELECT {_prefixed("e", ENTITY_COLUMNS)}
            FROM entities e
            JOIN entity_memories em ON em.entity_id = e.id
            WHERE em.memory_id = ?
            ORDER BY e.id
            """,
            (memory_id,),
        )
        return [self._row_to_entity(row) for row in rows]

    async def link_entity_memory(
        self,
        entity_id: str,
        memory_id: str,
        mention_text: str | None = None,
        confidence: float = 1.0,
    ) -> bool:
        cursor = await self._execute(
            """
            INSERT OR IGNORE INTO entity_memories
                (entity_id, memory_id, mention_text, confidence, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (entity_id, memory_id, mention_text, confidence, datetime.now().isoformat()),
        )
        created = cursor.rowcount > 0
        if not created:
            await self._execute(
                """
                UPDATE entity_memories SET mention_text = ?, confidence = ?
                WHERE entity_id = ? AND memory_id = ?
                """,
                (mention_text, confidence, entity_id, memory_id),
            )
        await self._refresh_mention_count(entity_id)
        return created

    async def unlink_entity_memory(self, entity_id: str, memory_id: str) -> int:
        await self._execute(
            "DELETE FROM entity_memories WHERE entity_id = ? AND memory_id = ?",
            (entity_id, memory_id),
        )
        return await self._refresh_mention_count(entity_id)

    async def get_memory_ids_for_entity(self, entity_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT memory_id FROM entity_memories WHERE entity_id = ? ORDER BY memory_id",
            (entity_id,),
        )
        return [row[0] for row in rows]

    async def _refresh_mention_count(self, entity_id: str) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) FROM entity_memories WHERE entity_id = ?", (entity_id,)
        )
        count = row[0] if row else 0
        # mention_count stays >= 1; a zero-count entity is an orphan awaiting deletion
        await self._execute(
            "UPDATE entities SET mention_count = ? WHERE id = ?", (max(count, 1), entity_id)
        )
        return count

    # ═══════════════════════════════════════════════════════════
    # RELATIONSHIP OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def create_relationship(self, relationship: Relationship) -> Relationship:
        await self._ensure_connection()
        try:
            await self.connection.execute(
                f"INSERT INTO relationships ({RELATIONSHIP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                self._relationship_params(relationship),
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to create relationship: {e}",
                context={
                    "relationship_id": relationship.id,
                    "source_entity_id": relationship.source_entity_id,
                    "target_entity_id": relationship.target_entity_id,
                },
            ) from e
        return relationship

    async def get_relationship(self, relationship_id: str) -> Relationship | None:
        row = await self._fetchone(
            f"SELECT {RELATIONSHIP_COLUMNS} FROM relationships WHERE id = ?", (relationship_id,)
        )
        return self._row_to_relationship(row) if row else None

    async def find_relationship(
        self, source_entity_id: str, target_entity_id: str, relationship_type: str
    ) -> Relationship | None:
        row = await self._fetchone(
            f"""
            SELECT {RELATIONSHIP_COLUMNS} FROM relationships
            WHERE source_entity_id = ? AND target_entity_id = ? AND relationship_type = ?
            """,
            (source_entity_id, target_entity_id, relationship_type),
        )
        return self._row_to_relationship(row) if row else None

    async def update_relationship(self, relationship: Relationship) -> None:
        cursor = await self._execute(
            "UPDATE relationships SET description = ?, strength = ? WHERE id = ?",
            (relationship.description, relationship.strength, relationship.id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(
                f"Relationship {relationship.id} not found",
                context={"relationship_id": relationship.id},
            )

    async def delete_relationship(self, relationship_id: str) -> bool:
        cursor = await self._execute("DELETE FROM relationships WHERE id = ?", (relationship_id,))
        return cursor.rowcount > 0

    async def list_relationships(self) -> list[Relationship]:
        rows = await self._fetchall(f"SELECT {RELATIONSHIP_COLUMNS} FROM relationships ORDER BY id")
        return [self._row_to_relationship(row) for row in rows]

    async def get_relationships_for_entity(
        self,
        entity_id: str,
        direction: RelationshipDirection = RelationshipDirection.BOTH,
    ) -> list[Relationship]:
        if direction == RelationshipDirection.SOURCE:
            where, params = "source_entity_id = ?", (entity_id,)
        elif direction == RelationshipDirection.TARGET:
            where, params = "target_entity_id = ?", (entity_id,)
        else:
            where, params = "source_entity_id = ? OR target_entity_id = ?", (entity_id, entity_id)

        rows = await self._fetchall(
            f"SELECT {RELATIONSHIP_COLUMNS} FROM relationships WHERE {where} ORDER BY id", params
        )
        return [self._row_to_relationship(row) for row in rows]

    async def find_relationships_by_memory(self, memory_id: str) -> list[Relationship]:
        rows = await self._fetchall(
            f"""
            SELECT {_prefixed("r", RELATIONSHIP_COLUMNS)}
            FROM relationships r
            JOIN relationship_sources rs ON rs.relationship_id = r.id
            WHERE rs.memory_id = ?
            ORDER BY r.id
            """,
            (memory_id,),
        )
        return [self._row_to_relationship(row) for row in rows]

    async def link_relationship_source(
        self, relationship_id: str, memory_id: str, evidence_text: str | None = None
    ) -> bool:
        cursor = await self._execute(
            """
            INSERT OR IGNORE INTO relationship_sources
                (relationship_id, memory_id, evidence_text, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (relationship_id, memory_id, evidence_text, datetime.now().isoformat()),
        )
        return cursor.rowcount > 0

    async def unlink_relationship_source(self, relationship_id: str, memory_id: str) -> int:
        await self._execute(
            "DELETE FROM relationship_sources WHERE relationship_id = ? AND memory_id = ?",
            (relationship_id, memory_id),
        )
        row = await self._fetchone(
            "SELECT COUNT(*) FROM relationship_sources WHERE relationship_id = ?",
            (relationship_id,),
        )
        return row[0] if row else 0

    # ═══════════════════════════════════════════════════════════
    # COMMUNITY OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def replace_communities(self, communities: list[Community]) -> CommunityReplacement:
        replacement = CommunityReplacement()
        incoming = {community.id: community for community in communities}

        async with self.transaction():
            rows = await self._fetchall("SELECT id FROM communities")
            existing = {row[0] for row in rows}

            for community_id in sorted(existing - incoming.keys()):
                report = await self.get_report_for_community(community_id)
                if report is not None:
                    replacement.removed_reports.append(report)
                await self._execute("DELETE FROM communities WHERE id = ?", (community_id,))
                replacement.removed_ids.append(community_id)

            now = datetime.now().isoformat()
            # Parents live one level down, so ascending level order satisfies the FK
            for community in sorted(communities, key=lambda c: (c.level, c.id)):
                if community.id in existing:
                    await self._execute(
                        """
                        UPDATE communities SET parent_id = ?, entity_count = ?, resolution = ?,
                            modularity = ?, updated_at = ?
                        WHERE id = ?
                        """,
                        (
                            community.parent_id,
                            community.entity_count,
                            community.resolution,
                            community.modularity,
                            now,
                            community.id,
                        ),
                    )
                    replacement.retained_ids.append(community.id)
                    continue

                await self._execute(
                    f"INSERT INTO communities ({COMMUNITY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        community.id,
                        community.level,
                        community.parent_id,
                        community.entity_count,
                        community.resolution,
                        community.modularity,
                        community.created_at.isoformat(),
                        now,
                    ),
                )
                await self._executemany(
                    "INSERT INTO community_members (community_id, entity_id) VALUES (?, ?)",
                    [(community.id, entity_id) for entity_id in sorted(community.member_ids)],
                )
                replacement.created_ids.append(community.id)

        logger.bind(
            created=len(replacement.created_ids),
            retained=len(replacement.retained_ids),
            removed=len(replacement.removed_ids),
        ).info(
            f"Replaced communities: {len(replacement.created_ids)} created, "
            f"{len(replacement.retained_ids)} retained, {len(replacement.removed_ids)} removed",
        )
        return replacement

    async def get_community(self, community_id: str) -> Community | None:
        row = await self._fetchone(
            f"SELECT {COMMUNITY_COLUMNS} FROM communities WHERE id = ?", (community_id,)
        )
        if not row:
            return None
        return self._row_to_community(row, await self.get_community_members(community_id))

    async def list_communities(self, level: int | None = None) -> list[Community]:
        if level is None:
            rows = await self._fetchall(
                f"SELECT {COMMUNITY_COLUMNS} FROM communities ORDER BY level, id"
            )
            member_rows = await self._fetchall(
                "SELECT community_id, entity_id FROM community_members ORDER BY entity_id"
            )
        else:
            rows = await self._fetchall(
                f"SELECT {COMMUNITY_COLUMNS} FROM communities WHERE level = ? ORDER BY id",
                (level,),
            )
            member_rows = await self._fetchall(
                """
                SELECT cm.community_id, cm.entity_id FROM community_members cm
                JOIN communities c ON c.id = cm.community_id
                WHERE c.level = ?
                ORDER BY cm.entity_id
                """,
                (level,),
            )

        members: dict[str, list[str]] = defaultdict(list)
        for community_id, entity_id in member_rows:
            members[community_id].append(entity_id)
        return [self._row_to_community(row, members.get(row[0], [])) for row in rows]

    async def get_community_members(self, community_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT entity_id FROM community_members WHERE community_id = ? ORDER BY entity_id",
            (community_id,),
        )
        return [row[0] for row in rows]

    async def get_entity_community(self, entity_id: str, level: int) -> Community | None:
        row = await self._fetchone(
            """
            SELECT c.id FROM communities c
            JOIN community_members cm ON cm.community_id = c.id
            WHERE cm.entity_id = ? AND c.level = ?
            """,
            (entity_id, level),
        )
        return await self.get_community(row[0]) if row else None

    # ═══════════════════════════════════════════════════════════
    # REPORT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def save_report(self, report: CommunityReport) -> CommunityReport | None:
        async with self.transaction():
            previous = await self.get_report_for_community(report.community_id)
            if previous is not None:
                await self._execute(
                    "DELETE FROM community_reports WHERE community_id = ?", (report.community_id,)
                )
            await self._execute(
                f"INSERT INTO community_reports ({REPORT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    report.id,
                    report.community_id,
                    report.title,
                    report.summary,
                    report.full_content,
                    json.dumps(report.key_findings),
                    report.rating,
                    report.rating_explanation,
                    report.prompt_version,
                    report.embedding_id,
                    report.created_at.isoformat(),
                ),
            )
        return previous

    async def get_report(self, report_id: str) -> CommunityReport | None:
        row = await self._fetchone(
            f"SELECT {REPORT_COLUMNS} FROM community_reports WHERE id = ?", (report_id,)
        )
        return self._row_to_report(row) if row else None

    async def get_report_for_community(self, community_id: str) -> CommunityReport | None:
        row = await self._fetchone(
            f"SELECT {REPORT_COLUMNS} FROM community_reports WHERE community_id = ?",
            (community_id,),
        )
        return self._row_to_report(row) if row else None

    async def list_reports(self, level: int | None = None) -> list[CommunityReport]:
        if level is None:
            rows = await self._fetchall(
                f"SELECT {REPORT_COLUMNS} FROM community_reports ORDER BY community_id"
            )
        else:
            columns = _prefixed("r", REPORT_COLUMNS)
            rows = await self._fetchall(
                f"""
                SELECT {columns} FROM community_reports r
                JOIN communities c ON c.id = r.community_id
                WHERE c.level = ?
                ORDER BY r.community_id
                """,
                (level,),
            )
        return [self._row_to_report(row) for row in rows]

    async def set_report_embedding_id(self, report_id: str, embedding_id: str | None) -> None:
        await self._execute(
            "UPDATE community_reports SET embedding_id = ? WHERE id = ?", (embedding_id, report_id)
        )

    # ═══════════════════════════════════════════════════════════
    # FINGERPRINTS
    # ═══════════════════════════════════════════════════════════

    async def get_fingerprint(self, memory_id: str) -> MemoryFingerprint | None:
        row = await self._fetchone(
            """
            SELECT memory_id, content_hash, extraction_version, processed_at
            FROM memory_fingerprints WHERE memory_id = ?
            """,
            (memory_id,),
        )
        return self._row_to_fingerprint(row) if row else None

    async def list_fingerprints(self) -> dict[str, MemoryFingerprint]:
        rows = await self._fetchall(
            """
            SELECT memory_id, content_hash, extraction_version, processed_at
            FROM memory_fingerprints ORDER BY memory_id
            """
        )
        return {row[0]: self._row_to_fingerprint(row) for row in rows}

    async def save_fingerprint(self, fingerprint: MemoryFingerprint) -> None:
        await self._execute(
            """
            INSERT OR REPLACE INTO memory_fingerprints
                (memory_id, content_hash, extraction_version, processed_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                fingerprint.memory_id,
                fingerprint.content_hash,
                fingerprint.extraction_version,
                fingerprint.processed_at.isoformat(),
            ),
        )

    async def delete_fingerprint(self, memory_id: str) -> None:
        await self._execute("DELETE FROM memory_fingerprints WHERE memory_id = ?", (memory_id,))

    # ═══════════════════════════════════════════════════════════
    # PENDING VECTOR DELETES
    # ═══════════════════════════════════════════════════════════

    async def queue_vector_delete(self, vector_id: str) -> None:
        await self._execute(
            "INSERT OR IGNORE INTO pending_vector_deletes (vector_id, queued_at) VALUES (?, ?)",
            (vector_id, datetime.now().isoformat()),
        )

    async def list_pending_vector_deletes(self) -> list[str]:
        rows = await self._fetchall(
            "SELECT vector_id FROM pending_vector_deletes ORDER BY queued_at, vector_id"
        )
        return [row[0] for row in rows]

    async def clear_vector_delete(self, vector_id: str) -> None:
        await self._execute("DELETE FROM pending_vector_deletes WHERE vector_id = ?", (vector_id,))

    # ═══════════════════════════════════════════════════════════
    # STATS
    # ═══════════════════════════════════════════════════════════

    async def get_stats(self) -> GraphStats:
        async def count(table: str) -> int:
            row = await self._fetchone(f"SELECT COUNT(*) FROM {table}")
            return row[0] if row else 0

        level_rows = await self._fetchall(
            "SELECT level, COUNT(*) FROM communities GROUP BY level ORDER BY level"
        )
        return GraphStats(
            entities=await count("entities"),
            relationships=await count("relationships"),
            communities=await count("communities"),
            reports=await count("community_reports"),
            processed_memories=await count("memory_fingerprints"),
            communities_per_level={level: total for level, total in level_rows},
        )

    async def close(self) -> None:
        """Close the connection if this store opened it."""
        if self.connection is not None and self._owns_connection:
            await self.connection.close()
        self.connection = None
        self._configured = False

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    async def _execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        await self._ensure_connection()
        try:
            return await self.connection.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}", context={"sql": sql.strip()[:120]}) from e

    async def _executemany(self, sql: str, params: Iterable[tuple]) -> None:
        await self._ensure_connection()
        try:
            await self.connection.executemany(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}", context={"sql": sql.strip()[:120]}) from e

    async def _fetchone(self, sql: str, params: tuple = ()) -> tuple | None:
        cursor = await self._execute(sql, params)
        return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        cursor = await self._execute(sql, params)
        return list(await cursor.fetchall())

    async def _ensure_connection(self) -> None:
        if self.connection is None or not self._configured:
            await self.connect()

    def _entity_params(self, entity: Entity) -> tuple:
        return (
            entity.id,
            entity.canonical_name,
            entity.entity_type.value,
            entity.description,
            entity.mention_count,
            entity.extraction_confidence,
            entity.extraction_version,
            entity.first_seen_at.isoformat(),
            entity.last_seen_at.isoformat(),
            entity.embedding_id,
            json.dumps(entity.metadata),
        )

    def _relationship_params(self, relationship: Relationship) -> tuple:
        return (
            relationship.id,
            relationship.source_entity_id,
            relationship.target_entity_id,
            relationship.relationship_type,
            relationship.description,
            relationship.strength,
            relationship.created_at.isoformat(),
        )

    def _row_to_entity(self, row: tuple) -> Entity:
        """Convert database row to Entity object."""
        return Entity(
            id=row[0],
            canonical_name=row[1],
            entity_type=EntityType(row[2]),
            description=row[3],
            mention_count=row[4],
            extraction_confidence=row[5],
            extraction_version=row[6],
            first_seen_at=datetime.fromisoformat(row[7]),
            last_seen_at=datetime.fromisoformat(row[8]),
            embedding_id=row[9],
            metadata=json.loads(row[10]) if row[10] else {},
        )

    def _row_to_relationship(self, row: tuple) -> Relationship:
        return Relationship(
            id=row[0],
            source_entity_id=row[1],
            target_entity_id=row[2],
            relationship_type=row[3],
            description=row[4],
            strength=row[5],
            created_at=datetime.fromisoformat(row[6]),
        )

    def _row_to_community(self, row: tuple, member_ids: list[str]) -> Community:
        return Community(
            id=row[0],
            level=row[1],
            parent_id=row[2],
            entity_count=row[3],
            resolution=row[4],
            modularity=row[5],
            created_at=datetime.fromisoformat(row[6]),
            updated_at=datetime.fromisoformat(row[7]),
            member_ids=list(member_ids),
        )

    def _row_to_report(self, row: tuple) -> CommunityReport:
        key_findings: Any = json.loads(row[5]) if row[5] else []
        return CommunityReport(
            id=row[0],
            community_id=row[1],
            title=row[2],
            summary=row[3],
            full_content=row[4],
            key_findings=key_findings,
            rating=row[6],
            rating_explanation=row[7],
            prompt_version=row[8],
            embedding_id=row[9],
            created_at=datetime.fromisoformat(row[10]),
        )

    def _row_to_fingerprint(self, row: tuple) -> MemoryFingerprint:
        return MemoryFingerprint(
            memory_id=row[0],
            content_hash=row[1],
            extraction_version=row[2],
            processed_at=datetime.fromisoformat(row[3]),
        )
